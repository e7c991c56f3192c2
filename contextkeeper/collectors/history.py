# contextkeeper/collectors/history.py
"""
Recent relevant shell commands, read from the log appended by the shell hook.

Each log line is JSON (``{"timestamp": ..., "command": ...}``); plain
``timestamp<TAB>command`` lines and bare commands are accepted as well.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Pattern, Tuple

from contextkeeper import env
from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError, CollectorErrorKind
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .base import Collector
from .models import HistoryEntry, SectionName

logger = get_logger("collectors.history")

TAIL_BYTES = 256 * 1024


def read_tail(path: Path, max_bytes: int = TAIL_BYTES) -> List[str]:
    """Last *max_bytes* of *path* as complete lines (a cut first line is dropped)."""
    with path.open("rb") as fh:
        fh.seek(0, 2)
        size = fh.tell()
        start = max(0, size - max_bytes)
        fh.seek(start)
        data = fh.read()
    lines = data.decode("utf-8", errors="replace").splitlines()
    if start > 0 and lines:
        lines = lines[1:]
    return lines


def compile_patterns(patterns: List[str]) -> List[Pattern[str]]:
    compiled = []
    for p in patterns:
        try:
            compiled.append(re.compile(p))
        except re.error as exc:
            logger.warning("Ignoring invalid history pattern %r: %s", p, exc)
    return compiled


def parse_line(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(timestamp, command)`` or None for blank/unusable lines."""
    line = line.strip()
    if not line:
        return None
    if line.startswith("{"):
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(obj, dict):
            return None
        command = str(obj.get("command") or "").strip()
        ts = obj.get("timestamp", "")
        if isinstance(ts, (int, float)):
            ts = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        return (str(ts or ""), command) if command else None
    if "\t" in line:
        ts, command = line.split("\t", 1)
        return ts.strip(), command.strip()
    return "", line


def _epoch(ts: str) -> float:
    if not ts:
        return -math.inf
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return -math.inf


def first_match(command: str, patterns: List[Pattern[str]]) -> Optional[str]:
    """Source of the first pattern (in declared order) that matches."""
    for pattern in patterns:
        if pattern.search(command):
            return pattern.pattern
    return None


class HistoryCollector(Collector):
    section = SectionName.HISTORY

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> List[HistoryEntry]:
        settings = config.history
        if not settings.enabled:
            return []

        path = (
            config.resolve(settings.log_file)
            if settings.log_file
            else env.get_default_history_log()
        )
        if not path.is_file():
            logger.debug("History log %s not found", path)
            return []

        try:
            lines = read_tail(path)
        except OSError as exc:
            raise CollectorError(CollectorErrorKind.IO_FAILURE, f"cannot read {path}: {exc}") from exc

        patterns = compile_patterns(settings.patterns)
        matched: List[Tuple[float, int, HistoryEntry]] = []
        for index, line in enumerate(lines):
            parsed = parse_line(line)
            if parsed is None:
                continue
            ts, command = parsed
            if patterns:
                pattern = first_match(command, patterns)
                if pattern is None:
                    continue
            else:
                pattern = None
            matched.append(
                (_epoch(ts), index, HistoryEntry(timestamp=ts, command=command, pattern=pattern))
            )

        # newest first; for equal/unknown timestamps the later log line wins
        matched.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in matched[: settings.max_entries]]
