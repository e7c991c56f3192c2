# contextkeeper/collectors/workstate.py
from __future__ import annotations

from typing import Optional

from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError, CollectorErrorKind, PersistenceError
from contextkeeper.runner import ExternalCommandRunner
from contextkeeper.state import WorkState, WorkStateStore

from .base import Collector
from .models import SectionName


class WorkStateCollector(Collector):
    section = SectionName.WORK_STATE

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> Optional[WorkState]:
        try:
            return WorkStateStore(config.root).load()
        except PersistenceError as exc:
            raise CollectorError(CollectorErrorKind.IO_FAILURE, str(exc)) from exc
