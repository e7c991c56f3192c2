# contextkeeper/collectors/build_scripts.py
"""
Build-target discovery from per-target shell config files, e.g.

    # configs/pixel.conf
    TARGET_NAME="pixel"
    LUNCH_TARGET=aosp_oriole-userdebug
    CAN_FLASH=true
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError, CollectorErrorKind
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .base import Collector
from .models import BuildScriptSection, BuildTarget, SectionName

logger = get_logger("collectors.build_scripts")

MAX_COMMANDS = 10
_TRUE = {"true", "1", "yes", "on"}

_FIELDS = {
    "TARGET_NAME": "name",
    "TARGET_DESCRIPTION": "description",
    "CONTAINER_NAME": "container",
    "LUNCH_TARGET": "launch_target",
    "CAN_EMULATOR": "can_emulate",
    "CAN_FLASH": "can_flash",
}


def parse_assignment(line: str) -> Optional[Tuple[str, str]]:
    """``KEY=value`` (optionally ``export``-ed and quoted) → (key, value)."""
    if "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if key.startswith("export "):
        key = key[len("export "):].strip()
    if not key or " " in key:
        return None
    value = value.strip().strip('"').strip("'")
    return key, value


def parse_target(text: str, fallback_name: str) -> BuildTarget:
    fields: Dict[str, object] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        pair = parse_assignment(line)
        if not pair or pair[0] not in _FIELDS:
            continue
        attr = _FIELDS[pair[0]]
        if attr.startswith("can_"):
            fields[attr] = pair[1].lower() in _TRUE
        else:
            fields[attr] = pair[1]

    if not fields.get("name"):
        fields["name"] = fallback_name
    return BuildTarget(**fields)


def parse_entry_point_commands(text: str) -> List[str]:
    """Distinct ``./script.sh ...`` invocations mentioned in the entry point."""
    commands = {
        line.strip()
        for line in text.splitlines()
        if "./" in line and ".sh " in line and not line.strip().startswith("#")
    }
    return sorted(commands)[:MAX_COMMANDS]


class BuildScriptCollector(Collector):
    section = SectionName.BUILD_SCRIPTS

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> BuildScriptSection:
        scripts = config.scripts
        targets: List[BuildTarget] = []

        if scripts.config_dir:
            config_dir = config.resolve(scripts.config_dir)
            if config_dir.is_dir():
                targets = [
                    self._read_target(path)
                    for path in sorted(config_dir.glob(scripts.config_pattern))
                    if path.is_file()
                ]
            else:
                logger.debug("Config dir %s does not exist", config_dir)

        commands: List[str] = []
        if scripts.entry_point:
            entry = config.resolve(scripts.entry_point)
            if entry.is_file():
                commands = parse_entry_point_commands(self._read(entry))

        return BuildScriptSection(targets=targets, commands=commands)

    def _read_target(self, path: Path) -> BuildTarget:
        return parse_target(self._read(path), fallback_name=path.stem)

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise CollectorError(CollectorErrorKind.IO_FAILURE, f"cannot read {path}: {exc}") from exc
