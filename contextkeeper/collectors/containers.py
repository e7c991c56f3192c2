# contextkeeper/collectors/containers.py
from __future__ import annotations

from typing import List

from contextkeeper.config import ProjectConfig
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .base import Collector, expect_ok
from .models import ContainerInfo, SectionName

logger = get_logger("collectors.containers")

PS_FORMAT = "{{.Names}}\t{{.Status}}"


def parse_ps_output(output: str, runtime: str) -> List[ContainerInfo]:
    containers: List[ContainerInfo] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0].strip():
            if line.strip():
                logger.debug("Skipping unparseable %s row: %r", runtime, line)
            continue
        containers.append(
            ContainerInfo(name=parts[0].strip(), runtime=runtime, status=parts[1].strip())
        )
    return containers


class ContainerCollector(Collector):
    """Running containers of the configured runtime (podman, docker, …)."""

    section = SectionName.CONTAINERS

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> List[ContainerInfo]:
        runtime = config.containers.runtime
        result = expect_ok(runner.run(runtime, ["ps", "--format", PS_FORMAT]))
        return parse_ps_output(result.stdout, runtime)
