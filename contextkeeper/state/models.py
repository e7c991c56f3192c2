# contextkeeper/state/models.py
"""
Work‑state data models.

• Pydantic v2 (`model_config = ConfigDict(...)`).
• `TodoStatus` is a proper Enum, so Pydantic can emit JSON‑schema.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TodoItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str
    status: TodoStatus = TodoStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_").replace(" ", "_")
        return value


class WorkState(BaseModel):
    """The single persisted summary of in-progress work for one project."""

    model_config = ConfigDict(extra="ignore")

    task_summary: str
    working_files: List[str] = Field(default_factory=list)
    notes: str = ""
    todos: List[TodoItem] = Field(default_factory=list)
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    project_root: Optional[str] = None
    files_detected: bool = False
