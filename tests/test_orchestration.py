import threading
import time

import pytest

from contextkeeper.collectors import SectionName, collect_all, collect_sections
from contextkeeper.collectors.base import Collector
from contextkeeper.config import default_config
from contextkeeper.errors import CollectorError, CollectorErrorKind


class StaticCollector(Collector):
    def __init__(self, section, value):
        self.section = section
        self.value = value

    def collect(self, config, runner):
        return self.value


class FailingCollector(Collector):
    def __init__(self, section, exc):
        self.section = section
        self.exc = exc

    def collect(self, config, runner):
        raise self.exc


class SlowCollector(Collector):
    def __init__(self, section, seconds):
        self.section = section
        self.seconds = seconds
        self.runner = None
        self.daemon = None

    def collect(self, config, runner):
        self.runner = runner
        self.daemon = threading.current_thread().daemon
        time.sleep(self.seconds)
        return ["late"]


@pytest.fixture
def config(tmp_path):
    return default_config(tmp_path)


@pytest.mark.asyncio
async def test_failure_only_drops_its_own_section(config, runner):
    registry = {
        SectionName.GIT: StaticCollector(SectionName.GIT, ["repo"]),
        SectionName.CONTAINERS: FailingCollector(
            SectionName.CONTAINERS,
            CollectorError(CollectorErrorKind.TOOL_NOT_FOUND, "podman: not found on PATH"),
        ),
        SectionName.HISTORY: StaticCollector(SectionName.HISTORY, []),
    }
    report = await collect_all(config, registry.keys(), runner=runner, collectors=registry)

    assert report.get(SectionName.GIT) == ["repo"]
    assert report.has(SectionName.HISTORY)
    assert not report.has(SectionName.CONTAINERS)
    assert report.warnings == ["containers: podman: not found on PATH (tool_not_found)"]


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_warning(config, runner):
    registry = {SectionName.DEVICES: FailingCollector(SectionName.DEVICES, KeyError("boom"))}
    report = await collect_all(config, registry.keys(), runner=runner, collectors=registry)

    assert report.sections == {}
    assert len(report.warnings) == 1
    assert report.warnings[0].startswith("devices: internal error (KeyError")


@pytest.mark.asyncio
async def test_slow_collector_times_out_others_survive(config, runner):
    slow = SlowCollector(SectionName.HISTORY, seconds=2.0)
    registry = {
        SectionName.GIT: StaticCollector(SectionName.GIT, []),
        SectionName.HISTORY: slow,
    }
    started = time.monotonic()
    report = await collect_all(
        config, registry.keys(), runner=runner, collectors=registry, timeout=0.2
    )
    elapsed = time.monotonic() - started

    assert elapsed < 1.5
    assert report.has(SectionName.GIT)
    assert not report.has(SectionName.HISTORY)
    assert report.warnings == ["history: timed out after 0.2s"]
    assert slow.runner._aborted
    # an abandoned worker must not keep the interpreter alive at exit
    assert slow.daemon is True


@pytest.mark.asyncio
async def test_collectors_run_concurrently(config, runner):
    barrier = threading.Barrier(3, timeout=2)

    class Rendezvous(Collector):
        def __init__(self, section):
            self.section = section

        def collect(self, config, runner):
            barrier.wait()
            return self.section.value

    registry = {
        s: Rendezvous(s)
        for s in (SectionName.GIT, SectionName.CONTAINERS, SectionName.DEVICES)
    }
    report = await collect_all(config, registry.keys(), runner=runner, collectors=registry)

    assert report.warnings == []
    assert set(report.sections) == set(registry)


@pytest.mark.asyncio
async def test_only_requested_sections_run(config, runner):
    calls = []

    class Recording(StaticCollector):
        def collect(self, config, runner):
            calls.append(self.section)
            return self.value

    registry = {
        SectionName.GIT: Recording(SectionName.GIT, []),
        SectionName.DEVICES: Recording(SectionName.DEVICES, []),
    }
    report = await collect_all(config, [SectionName.GIT], runner=runner, collectors=registry)

    assert calls == [SectionName.GIT]
    assert list(report.sections) == [SectionName.GIT]


def test_sync_wrapper(config, runner):
    registry = {SectionName.GIT: StaticCollector(SectionName.GIT, ["x"])}
    report = collect_sections(config, [SectionName.GIT], runner=runner, collectors=registry)
    assert report.get(SectionName.GIT) == ["x"]
