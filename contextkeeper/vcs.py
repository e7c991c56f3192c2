# contextkeeper/vcs.py
"""
Git helpers shared by the Git collector and work-file auto-detection.

All git invocations go through an `ExternalCommandRunner`, so callers (and
tests) decide how commands are executed.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel

from contextkeeper.logger import get_logger
from contextkeeper.runner import CommandResult, ExternalCommandRunner

logger = get_logger("vcs")

SKIP_DIRS = frozenset({"node_modules", "target", "out"})
MAX_COMMIT_CHARS = 50

# "## main...origin/main [ahead 1, behind 2]"
_BRANCH_RE = re.compile(
    r"^## (?P<head>.+?)(?:\.\.\.(?P<upstream>\S+))?(?: \[(?P<track>[^\]]*)\])?$"
)
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")


class PorcelainStatus(BaseModel):
    branch: str = ""
    detached: bool = False
    ahead: int = 0
    behind: int = 0
    modified: int = 0
    untracked: int = 0
    paths: List[str] = []

    @property
    def dirty(self) -> bool:
        return bool(self.modified or self.untracked)


# ─────────────────────────────  discovery  ──────────────────────────────────
def is_repo_root(path: Path) -> bool:
    return (path / ".git").exists()


def find_repositories(root: Path, max_depth: int) -> List[str]:
    """
    Walk *root* up to *max_depth* levels and return repo paths relative to it.

    Hidden directories and common build-output folders are skipped; found
    repositories are not descended into.
    """
    found: List[str] = []

    def _walk(current: Path, depth: int) -> None:
        if depth > max_depth:
            return
        if depth > 0 and is_repo_root(current):
            found.append(current.relative_to(root).as_posix())
            return
        try:
            children = sorted(os.scandir(current), key=lambda e: e.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", current, exc)
            return
        for entry in children:
            if entry.name.startswith(".") or entry.name in SKIP_DIRS:
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    _walk(Path(entry.path), depth + 1)
            except OSError:
                continue

    _walk(root, 0)
    return sorted(found)


def repository_paths(
    root: Path,
    explicit: Optional[Sequence[str]] = None,
    auto_detect: bool = True,
    scan_depth: int = 2,
) -> List[str]:
    """
    Repositories to inspect, relative to *root* (``"."`` for the root itself).

    Explicit paths win; otherwise a root repository is used alone; otherwise
    sub-directories are scanned when auto-detection is on.
    """
    if explicit is not None:
        return list(explicit)
    if is_repo_root(root):
        return ["."]
    if auto_detect:
        return find_repositories(root, scan_depth)
    return []


# ─────────────────────────────  queries  ────────────────────────────────────
def git(runner: ExternalCommandRunner, repo: Path, *args: str) -> CommandResult:
    return runner.run("git", ["-C", str(repo), *args])


def parse_porcelain(output: str) -> PorcelainStatus:
    """Parse ``git status --porcelain --branch`` output."""
    status = PorcelainStatus()
    for line in output.splitlines():
        if line.startswith("## "):
            m = _BRANCH_RE.match(line)
            if not m:
                continue
            head = m.group("head")
            if head.startswith("HEAD (no branch)") or head == "HEAD":
                status.detached = True
            elif head.startswith("No commits yet on "):
                status.branch = head[len("No commits yet on "):]
            else:
                status.branch = head
            track = m.group("track") or ""
            if a := _AHEAD_RE.search(track):
                status.ahead = int(a.group(1))
            if b := _BEHIND_RE.search(track):
                status.behind = int(b.group(1))
            continue
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        if " -> " in path:  # rename
            path = path.split(" -> ", 1)[1]
        if code == "??":
            status.untracked += 1
        else:
            status.modified += 1
        status.paths.append(path.strip('"'))
    return status


def short_commit(runner: ExternalCommandRunner, repo: Path) -> CommandResult:
    return git(runner, repo, "log", "-1", "--format=%h %s")


def truncate_commit(text: str) -> str:
    text = text.strip()
    if len(text) > MAX_COMMIT_CHARS:
        return text[: MAX_COMMIT_CHARS - 3] + "..."
    return text


def changed_files(
    runner: ExternalCommandRunner,
    root: Path,
    repos: Sequence[str],
    limit: int = 20,
) -> List[str]:
    """Changed paths across *repos*, relative to *root*, in repo order."""
    files: List[str] = []
    for rel in repos:
        repo = root / rel
        result = git(runner, repo, "status", "--porcelain")
        if not result.ok:
            logger.debug("Skipping %s for file detection: %s", rel, result.describe())
            continue
        for path in parse_porcelain(result.stdout).paths:
            files.append(path if rel == "." else f"{rel}/{path}")
            if len(files) >= limit:
                return files
    return files
