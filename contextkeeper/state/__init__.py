# contextkeeper/state/__init__.py
"""
contextkeeper.state
───────────────────
• One persisted `WorkState` per project under <home>/state/.
• Writes are atomic (tmp‑file in the same dir → os.replace), so a reader
  never observes a half‑written record.
• `save_work_state` is the operation behind the MCP tool and the CLI flag.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from contextkeeper import env, vcs
from contextkeeper.config import ProjectConfig
from contextkeeper.errors import PersistenceError
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .models import TodoItem, TodoStatus, WorkState

__all__ = [
    "TodoItem",
    "TodoStatus",
    "WorkState",
    "WorkStateStore",
    "save_work_state",
]

logger = get_logger("state")

MAX_DETECTED_FILES = 20


class WorkStateStore:
    """Load/save the single work-state record of one project."""

    def __init__(self, root: Path, state_dir: Optional[Path] = None) -> None:
        self.root = root.resolve()
        self._state_dir = state_dir

    # ---------- filesystem helpers -------------------------------------------------

    @property
    def path(self) -> Path:
        state_dir = self._state_dir or env.get_state_root()
        return state_dir / f"{env.project_key(self.root)}.json"

    # ---------- persistence ---------------------------------------------------------

    def load(self) -> Optional[WorkState]:
        """Return the saved state, or None when nothing has been saved yet."""
        p = self.path
        try:
            raw = p.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Cannot read work state {p}: {exc}") from exc

        try:
            return WorkState.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt work state {p}: {exc.error_count()} error(s)") from exc

    def save(self, state: WorkState) -> Path:
        """Atomically replace the saved state."""
        p = self.path
        tmp = p.with_name(f".{p.name}.{os.getpid()}.tmp")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as fh:
                fh.write(state.model_dump_json(indent=2))
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, p)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write work state {p}: {exc}") from exc

        logger.info("Work state saved to %s", p)
        return p

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise PersistenceError(f"Cannot remove work state {self.path}: {exc}") from exc
        logger.info("Work state cleared for %s", self.root)
        return True


# ---------------------------------------------------------------------------
# save_work_state operation
# ---------------------------------------------------------------------------


def _coerce_todos(todos: Optional[Iterable[Union[str, dict, TodoItem]]]) -> List[TodoItem]:
    items: List[TodoItem] = []
    for todo in todos or []:
        if isinstance(todo, TodoItem):
            items.append(todo)
        elif isinstance(todo, str):
            items.append(TodoItem(content=todo))
        else:
            items.append(TodoItem.model_validate(todo))
    return items


def detect_working_files(config: ProjectConfig, runner: ExternalCommandRunner) -> List[str]:
    """Changed files of the project's repositories; empty on any failure."""
    repos = vcs.repository_paths(
        config.root,
        explicit=config.git.paths,
        auto_detect=config.git.auto_detect,
        scan_depth=config.git.scan_depth,
    )
    if not repos:
        return []
    return vcs.changed_files(runner, config.root, repos, limit=MAX_DETECTED_FILES)


def save_work_state(
    config: ProjectConfig,
    task_summary: str,
    working_files: Optional[List[str]] = None,
    notes: str = "",
    todos: Optional[Iterable[Union[str, dict, TodoItem]]] = None,
    *,
    runner: Optional[ExternalCommandRunner] = None,
    store: Optional[WorkStateStore] = None,
) -> WorkState:
    """
    Replace the project's work state wholesale.

    An explicit `working_files` list (even an empty one) is stored as given;
    only an omitted list triggers auto-detection from git.
    """
    if not task_summary or not task_summary.strip():
        raise ValueError("task_summary must not be empty")

    detected = working_files is None
    if detected:
        runner = runner or ExternalCommandRunner(timeout=config.collectors.command_timeout)
        working_files = detect_working_files(config, runner)

    state = WorkState(
        task_summary=task_summary.strip(),
        working_files=list(working_files),
        notes=notes or "",
        todos=_coerce_todos(todos),
        project_root=str(config.root),
        files_detected=detected,
    )
    (store or WorkStateStore(config.root)).save(state)
    return state
