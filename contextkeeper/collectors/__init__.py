"""
contextkeeper.collectors
────────────────────────
• Closed set of collectors, one per snapshot section.
• `collect_all` runs each on its own daemon thread under its own timeout,
  and joins on all of them before returning. An abandoned thread never
  holds up interpreter exit.
• A failing or timed‑out collector loses only its own section and leaves a
  warning behind; nothing propagates to the caller.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .base import Collector
from .build_scripts import BuildScriptCollector
from .containers import ContainerCollector
from .devices import DeviceCollector
from .git import GitCollector
from .history import HistoryCollector
from .models import (
    BuildScriptSection,
    BuildTarget,
    ContainerInfo,
    DeviceInfo,
    GitRepoStatus,
    HistoryEntry,
    SectionName,
)
from .workstate import WorkStateCollector

__all__ = [
    "BuildScriptSection",
    "BuildTarget",
    "CollectionReport",
    "Collector",
    "ContainerInfo",
    "DeviceInfo",
    "GitRepoStatus",
    "HistoryEntry",
    "SectionName",
    "COLLECTORS",
    "collect_all",
    "collect_sections",
]

logger = get_logger("collectors")

COLLECTORS: Dict[SectionName, Collector] = {
    c.section: c
    for c in (
        WorkStateCollector(),
        GitCollector(),
        BuildScriptCollector(),
        ContainerCollector(),
        HistoryCollector(),
        DeviceCollector(),
    )
}


class CollectionReport(BaseModel):
    """Sections that succeeded, plus one warning per section that did not."""

    sections: Dict[SectionName, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    def has(self, name: SectionName) -> bool:
        return name in self.sections

    def get(self, name: SectionName) -> Any:
        return self.sections.get(name)


def _settle(fut: asyncio.Future, result: Any, exc: Optional[BaseException]) -> None:
    if fut.done():  # cancelled by wait_for
        return
    if exc is not None:
        fut.set_exception(exc)
    else:
        fut.set_result(result)


def _in_thread(
    loop: asyncio.AbstractEventLoop,
    collector: Collector,
    config: ProjectConfig,
    runner: ExternalCommandRunner,
) -> asyncio.Future:
    """Run ``collector.collect`` on a daemon thread; result lands in a loop future."""
    fut = loop.create_future()

    def _target() -> None:
        result: Any = None
        error: Optional[BaseException] = None
        try:
            result = collector.collect(config, runner)
        except Exception as exc:  # noqa: BLE001 - handed to the awaiting side
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, fut, result, error)
        except RuntimeError:
            logger.debug("Collector %s finished after its request ended", collector.name)

    threading.Thread(target=_target, name=f"collector-{collector.name}", daemon=True).start()
    return fut


async def collect_all(
    config: ProjectConfig,
    sections: Iterable[SectionName],
    runner: Optional[ExternalCommandRunner] = None,
    collectors: Optional[Dict[SectionName, Collector]] = None,
    timeout: Optional[float] = None,
) -> CollectionReport:
    registry = collectors if collectors is not None else COLLECTORS
    runner = runner or ExternalCommandRunner(timeout=config.collectors.command_timeout)
    limit = timeout if timeout is not None else config.collectors.timeout

    requested = set(sections)
    wanted: Sequence[Collector] = [registry[s] for s in registry if s in requested]
    report = CollectionReport()
    if not wanted:
        return report

    loop = asyncio.get_running_loop()
    runners = {c.section: runner.spawn() for c in wanted}

    async def _one(collector: Collector) -> Any:
        try:
            return await asyncio.wait_for(
                _in_thread(loop, collector, config, runners[collector.section]),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            # the worker thread cannot be cancelled; kill its subprocesses instead
            runners[collector.section].abort()
            raise

    results = await asyncio.gather(*(_one(c) for c in wanted), return_exceptions=True)

    for collector, result in zip(wanted, results):
        if isinstance(result, asyncio.TimeoutError):
            msg = f"{collector.name}: timed out after {limit:g}s"
            logger.warning("Collector %s", msg)
            report.warnings.append(msg)
        elif isinstance(result, CollectorError):
            logger.warning("Collector %s failed: %s", collector.name, result)
            report.warnings.append(f"{collector.name}: {result}")
        elif isinstance(result, BaseException):
            logger.error(
                "Collector %s crashed", collector.name, exc_info=(type(result), result, result.__traceback__)
            )
            report.warnings.append(f"{collector.name}: internal error ({type(result).__name__}: {result})")
        else:
            report.sections[collector.section] = result

    logger.info(
        "Collected %d/%d section(s), %d warning(s)",
        len(report.sections),
        len(wanted),
        len(report.warnings),
    )
    return report


def collect_sections(
    config: ProjectConfig,
    sections: Iterable[SectionName],
    runner: Optional[ExternalCommandRunner] = None,
    collectors: Optional[Dict[SectionName, Collector]] = None,
) -> CollectionReport:
    """Synchronous entry point used by the server and the CLI."""
    return asyncio.run(collect_all(config, sections, runner=runner, collectors=collectors))
