# context-keeper/tests/conftest.py
import os
import tempfile
from pathlib import Path
from typing import List, Sequence, Tuple

import pytest

# Loggers are created at import time; keep them out of the real ~/.contextkeeper.
os.environ.setdefault("CONTEXTKEEPER_HOME", tempfile.mkdtemp(prefix="ck-test-home-"))

from contextkeeper.runner import CommandResult, CommandStatus, ExternalCommandRunner  # noqa: E402


# ───────────────────────────────────────────────────────────────
#  Fake command runner
# ───────────────────────────────────────────────────────────────
class FakeRunner(ExternalCommandRunner):
    """
    Canned command results.

    Rules are ``(program, needle, result)``; a rule matches when *needle* is a
    contiguous run of the call's arguments. First matching rule wins; anything
    unmatched is reported as ``not_found``.
    """

    def __init__(self, available: Sequence[str] = ()):
        super().__init__(timeout=1.0)
        self.rules: List[Tuple[str, Tuple[str, ...], CommandResult]] = []
        self.available = set(available)
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []

    def on(self, program: str, *needle: str, stdout: str = "", status=CommandStatus.OK, returncode=None):
        if returncode is None:
            returncode = 0 if status is CommandStatus.OK else (1 if status is CommandStatus.NON_ZERO_EXIT else None)
        self.rules.append(
            (
                program,
                tuple(needle),
                CommandResult(program=program, status=status, stdout=stdout, returncode=returncode),
            )
        )
        self.available.add(program)
        return self

    def spawn(self):
        return self

    def which(self, program):
        return f"/usr/bin/{program}" if program in self.available else None

    def run(self, program, args=(), timeout=None, cwd=None):
        args = tuple(args)
        self.calls.append((program, args))
        for prog, needle, result in self.rules:
            if prog == program and _contains(args, needle):
                return result
        return CommandResult(program=program, status=CommandStatus.NOT_FOUND, error="not found on PATH")


def _contains(args: Tuple[str, ...], needle: Tuple[str, ...]) -> bool:
    if not needle:
        return True
    n = len(needle)
    return any(args[i : i + n] == needle for i in range(len(args) - n + 1))


# ───────────────────────────────────────────────────────────────
#  Fixtures
# ───────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Per-test tool home so work state never leaks between tests."""
    home = tmp_path / "_ck_home"
    monkeypatch.setenv("CONTEXTKEEPER_HOME", str(home))
    monkeypatch.delenv("CONTEXTKEEPER_CONFIG", raising=False)
    return home


BASIC_CONFIG = """
[project]
name = "Pixel Platform"
type = "aosp"

[scripts]
entry_point = "build.sh"
config_dir = "configs"
config_pattern = "*.conf"

[containers]
runtime = "podman"

[hints]
default = "Always build inside the aosp-builder container."

[history]
enabled = true
log_file = "history.jsonl"
max_entries = 20
"""


@pytest.fixture
def project(tmp_path) -> Path:
    """A project root with a TOML config and two build-target files."""
    root = tmp_path / "proj"
    root.mkdir()
    (root / "contextkeeper.toml").write_text(BASIC_CONFIG)
    configs = root / "configs"
    configs.mkdir()
    (configs / "a_pixel.conf").write_text(
        'TARGET_NAME="pixel"\nTARGET_DESCRIPTION="Pixel 6"\nCONTAINER_NAME=aosp-builder\n'
        "LUNCH_TARGET=aosp_oriole-userdebug\nCAN_FLASH=true\n"
    )
    (configs / "b_emu.conf").write_text(
        "# emulator build\nexport LUNCH_TARGET='sdk_phone64_x86_64-userdebug'\nCAN_EMULATOR=yes\n"
    )
    (root / "build.sh").write_text("#!/bin/bash\n./build.sh pixel\n./flash.sh pixel \n")
    return root


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()
