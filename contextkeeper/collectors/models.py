# contextkeeper/collectors/models.py
"""Records produced by the collectors."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class SectionName(str, Enum):
    """One section of a snapshot; also the collector's name."""

    WORK_STATE = "work_state"
    GIT = "git"
    BUILD_SCRIPTS = "build_scripts"
    CONTAINERS = "containers"
    HISTORY = "history"
    DEVICES = "devices"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class BuildTarget(_Record):
    name: str
    description: str = ""
    container: str = ""
    launch_target: str = ""
    can_emulate: bool = False
    can_flash: bool = False

    @property
    def capabilities(self) -> List[str]:
        caps = []
        if self.can_emulate:
            caps.append("emulator")
        if self.can_flash:
            caps.append("flash")
        return caps


class BuildScriptSection(_Record):
    targets: List[BuildTarget] = []
    commands: List[str] = []


class ContainerInfo(_Record):
    name: str
    runtime: str
    status: str = ""


class HistoryEntry(_Record):
    timestamp: str = ""
    command: str
    pattern: Optional[str] = None


class GitRepoStatus(_Record):
    path: str
    branch: str = "unknown"
    dirty: bool = False
    ahead: int = 0
    behind: int = 0
    modified: int = 0
    untracked: int = 0
    last_commit: str = ""
    degraded: bool = False
    error: Optional[str] = None

    @property
    def summary(self) -> str:
        if self.degraded:
            return "error"
        if not self.dirty:
            return "clean"
        parts = []
        if self.modified:
            parts.append(f"{self.modified}M")
        if self.untracked:
            parts.append(f"{self.untracked}U")
        return " ".join(parts)

    @property
    def divergence(self) -> str:
        parts = []
        if self.ahead:
            parts.append(f"↑{self.ahead}")
        if self.behind:
            parts.append(f"↓{self.behind}")
        return " ".join(parts)


class DeviceInfo(_Record):
    serial: str
    state: str
    transport: str
