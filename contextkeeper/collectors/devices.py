# contextkeeper/collectors/devices.py
from __future__ import annotations

from typing import List

from contextkeeper.config import ProjectConfig
from contextkeeper.runner import ExternalCommandRunner

from .base import Collector, expect_ok
from .models import DeviceInfo, SectionName


def parse_adb_devices(output: str) -> List[DeviceInfo]:
    devices: List[DeviceInfo] = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) < 2 or parts[1] == "offline":
            continue
        devices.append(DeviceInfo(serial=parts[0], state=parts[1], transport="adb"))
    return devices


def parse_fastboot_devices(output: str) -> List[DeviceInfo]:
    return [
        DeviceInfo(serial=line.split()[0], state="fastboot", transport="fastboot")
        for line in output.splitlines()
        if line.strip()
    ]


class DeviceCollector(Collector):
    """adb / fastboot devices; absent bridge tools simply contribute nothing."""

    section = SectionName.DEVICES

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> List[DeviceInfo]:
        devices: List[DeviceInfo] = []
        if runner.which("adb"):
            result = expect_ok(runner.run("adb", ["devices", "-l"]))
            devices.extend(parse_adb_devices(result.stdout))
        if runner.which("fastboot"):
            result = expect_ok(runner.run("fastboot", ["devices", "-l"]))
            devices.extend(parse_fastboot_devices(result.stdout))
        return devices
