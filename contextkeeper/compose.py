# contextkeeper/compose.py
"""
Level-aware snapshot composition.

Levels are ordered ``minimal < normal < full``; each one shows every section
of the previous level plus more. Within a section the level's item budget
keeps the first N items in the section's natural priority order and records
how many were dropped, so the renderer can print ``+K more``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from contextkeeper.collectors import BuildScriptSection, CollectionReport, SectionName
from contextkeeper.collectors.git import priority_order
from contextkeeper.config import ProjectConfig
from contextkeeper.state import WorkState

HINT_PREVIEW_CHARS = 160


class Level(str, Enum):
    MINIMAL = "minimal"
    NORMAL = "normal"
    FULL = "full"

    @property
    def rank(self) -> int:
        return list(Level).index(self)

    @classmethod
    def parse(cls, value: Optional[str]) -> "Level":
        if value is None or not str(value).strip():
            return cls.NORMAL
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(level.value for level in cls)
            raise ValueError(f"Unknown level {value!r} (expected one of: {choices})") from None


class LevelPlan(BaseModel):
    """What a level shows and how many items per section."""

    model_config = ConfigDict(frozen=True)

    sections: FrozenSet[SectionName]
    full_hint: bool
    dirty_repos_only: bool
    work_state_details: bool
    budgets: Dict[str, int] = Field(default_factory=dict)


LEVEL_PLANS: Dict[Level, LevelPlan] = {
    Level.MINIMAL: LevelPlan(
        sections=frozenset({SectionName.WORK_STATE, SectionName.GIT}),
        full_hint=False,
        dirty_repos_only=True,
        work_state_details=False,
        budgets={"working_files": 5, "git": 5},
    ),
    Level.NORMAL: LevelPlan(
        sections=frozenset(
            {
                SectionName.WORK_STATE,
                SectionName.GIT,
                SectionName.CONTAINERS,
                SectionName.BUILD_SCRIPTS,
            }
        ),
        full_hint=True,
        dirty_repos_only=True,
        work_state_details=True,
        budgets={
            "working_files": 10,
            "todos": 10,
            "git": 8,
            "targets": 10,
            "containers": 10,
            "commands": 0,
        },
    ),
    Level.FULL: LevelPlan(
        sections=frozenset(SectionName),
        full_hint=True,
        dirty_repos_only=False,
        work_state_details=True,
        budgets={
            "working_files": 20,
            "todos": 20,
            "git": 20,
            "targets": 25,
            "containers": 20,
            "commands": 10,
            "devices": 10,
        },
    ),
}


def required_sections(level: Level) -> FrozenSet[SectionName]:
    return LEVEL_PLANS[level].sections


# ---------------------------------------------------------------------------
# Snapshot models
# ---------------------------------------------------------------------------


class SectionSlice(BaseModel):
    items: List[Any] = Field(default_factory=list)
    omitted: int = 0

    def __len__(self) -> int:
        return len(self.items)


def truncate(items: Sequence[Any], budget: Optional[int]) -> SectionSlice:
    items = list(items)
    if budget is None or len(items) <= budget:
        return SectionSlice(items=items)
    return SectionSlice(items=items[:budget], omitted=len(items) - budget)


class WorkStateView(BaseModel):
    task_summary: str
    working_files: SectionSlice
    notes: Optional[str] = None
    todos: Optional[SectionSlice] = None
    saved_at: Optional[datetime] = None
    files_detected: bool = False


class ContextSnapshot(BaseModel):
    """Everything the renderer needs for one response."""

    project_name: str
    project_type: str
    level: Level
    hint: str = ""
    work_state: Optional[WorkStateView] = None
    targets: Optional[SectionSlice] = None
    commands: Optional[SectionSlice] = None
    containers: Optional[SectionSlice] = None
    history: Optional[SectionSlice] = None
    git: Optional[SectionSlice] = None
    devices: Optional[SectionSlice] = None
    warnings: List[str] = Field(default_factory=list)

    def present_sections(self) -> FrozenSet[str]:
        names = (
            "work_state",
            "targets",
            "commands",
            "containers",
            "history",
            "git",
            "devices",
        )
        return frozenset(n for n in names if getattr(self, n) is not None)


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


def _hint_for(text: str, full: bool) -> str:
    text = (text or "").strip()
    if full or not text:
        return text
    first = text.splitlines()[0].strip()
    if len(first) > HINT_PREVIEW_CHARS:
        first = first[: HINT_PREVIEW_CHARS - 3].rstrip() + "..."
    return first


class LevelComposer:
    """Select, truncate and order collected sections for one level."""

    def __init__(self, level: Level) -> None:
        self.level = level
        self.plan = LEVEL_PLANS[level]

    def _budget(self, key: str) -> Optional[int]:
        return self.plan.budgets.get(key)

    def _shows(self, name: SectionName) -> bool:
        return name in self.plan.sections

    def compose(self, config: ProjectConfig, report: CollectionReport) -> ContextSnapshot:
        snapshot = ContextSnapshot(
            project_name=config.name,
            project_type=config.project.type.value,
            level=self.level,
            hint=_hint_for(config.hints.default, self.plan.full_hint),
            warnings=list(report.warnings),
        )

        if self._shows(SectionName.WORK_STATE) and report.get(SectionName.WORK_STATE):
            snapshot.work_state = self._work_state(report.get(SectionName.WORK_STATE))

        if self._shows(SectionName.GIT) and report.has(SectionName.GIT):
            repos = priority_order(report.get(SectionName.GIT))
            if self.plan.dirty_repos_only:
                repos = [r for r in repos if r.dirty]
            snapshot.git = truncate(repos, self._budget("git"))

        if self._shows(SectionName.BUILD_SCRIPTS) and report.has(SectionName.BUILD_SCRIPTS):
            build: BuildScriptSection = report.get(SectionName.BUILD_SCRIPTS)
            snapshot.targets = truncate(build.targets, self._budget("targets"))
            if self._budget("commands"):
                snapshot.commands = truncate(build.commands, self._budget("commands"))

        if self._shows(SectionName.CONTAINERS) and report.has(SectionName.CONTAINERS):
            snapshot.containers = truncate(
                report.get(SectionName.CONTAINERS), self._budget("containers")
            )

        if self._shows(SectionName.HISTORY) and report.has(SectionName.HISTORY):
            snapshot.history = truncate(
                report.get(SectionName.HISTORY), config.history.max_entries
            )

        if self._shows(SectionName.DEVICES) and report.has(SectionName.DEVICES):
            snapshot.devices = truncate(report.get(SectionName.DEVICES), self._budget("devices"))

        return snapshot

    def _work_state(self, state: WorkState) -> WorkStateView:
        view = WorkStateView(
            task_summary=state.task_summary,
            working_files=truncate(state.working_files, self._budget("working_files")),
            saved_at=state.saved_at,
            files_detected=state.files_detected,
        )
        if self.plan.work_state_details:
            view.notes = state.notes or None
            view.todos = truncate(state.todos, self._budget("todos"))
        return view


def estimate_tokens(text: str) -> int:
    """Rough token count (≈4 characters per token)."""
    return (len(text) + 3) // 4
