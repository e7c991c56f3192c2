# contextkeeper/collectors/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError, CollectorErrorKind
from contextkeeper.runner import CommandResult, CommandStatus, ExternalCommandRunner

from .models import SectionName

_KIND_BY_STATUS = {
    CommandStatus.NOT_FOUND: CollectorErrorKind.TOOL_NOT_FOUND,
    CommandStatus.TIMEOUT: CollectorErrorKind.TIMEOUT,
    CommandStatus.NON_ZERO_EXIT: CollectorErrorKind.IO_FAILURE,
    CommandStatus.IO_FAILURE: CollectorErrorKind.IO_FAILURE,
}


class Collector(ABC):
    """
    Produces one snapshot section.

    Implementations are read-only on the project and raise `CollectorError`
    for anything that should drop their section.
    """

    section: SectionName

    @property
    def name(self) -> str:
        return self.section.value

    @abstractmethod
    def collect(self, config: ProjectConfig, runner: ExternalCommandRunner) -> Any:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def expect_ok(result: CommandResult) -> CommandResult:
    """Turn a failed command into the matching CollectorError."""
    if result.ok:
        return result
    raise CollectorError(_KIND_BY_STATUS[result.status], result.describe())
