# contextkeeper/config/models.py
"""
Configuration models.

• All models are Pydantic v2, frozen once loaded.
• Unknown keys are ignored so older/newer config files keep working.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HISTORY_PATTERNS: List[str] = [
    r"lunch\s+\S+",
    r"source\s+.*envsetup",
    r"export\s+\w+=",
    r"\bm\s+\S+",
    r"\bmm\b",
    r"\bmma\b",
]


class ProjectType(str, Enum):
    AOSP = "aosp"
    ROS = "ros"
    YOCTO = "yocto"
    CUSTOM = "custom"


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ProjectSection(_Section):
    name: str = ""
    type: ProjectType = ProjectType.CUSTOM


class ScriptsSection(_Section):
    entry_point: Optional[str] = None
    config_dir: Optional[str] = None
    config_pattern: str = "*.conf"


class ContainersSection(_Section):
    runtime: str = "podman"


class HintsSection(_Section):
    default: str = ""


class HistorySection(_Section):
    enabled: bool = True
    log_file: Optional[str] = None
    patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_HISTORY_PATTERNS))
    max_entries: int = Field(default=20, ge=1)


class GitSection(_Section):
    paths: Optional[List[str]] = None
    auto_detect: bool = True
    scan_depth: int = Field(default=2, ge=0)


class CollectorsSection(_Section):
    timeout: float = Field(default=5.0, gt=0)
    command_timeout: float = Field(default=3.0, gt=0)


class ProjectConfig(_Section):
    """Validated, immutable view of one project's config file."""

    root: Path
    source: Optional[Path] = None
    project: ProjectSection = Field(default_factory=ProjectSection)
    scripts: ScriptsSection = Field(default_factory=ScriptsSection)
    containers: ContainersSection = Field(default_factory=ContainersSection)
    hints: HintsSection = Field(default_factory=HintsSection)
    history: HistorySection = Field(default_factory=HistorySection)
    git: GitSection = Field(default_factory=GitSection)
    collectors: CollectorsSection = Field(default_factory=CollectorsSection)

    @property
    def name(self) -> str:
        return self.project.name or self.root.name

    def resolve(self, path: str) -> Path:
        """Resolve a config-relative path against the project root."""
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.root / p
