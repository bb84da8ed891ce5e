"""Shared test fixtures for mprobe."""

import pytest

from mprobe.battery import NullBatteryProbe
from mprobe.connections import NullConnectionProbe
from mprobe.models import ProcessRecord, ProcessStatus
from mprobe.monitor import SystemMonitor


def make_record(
    pid: int,
    ppid: int | None = None,
    cpu: float = 0.0,
    name: str | None = None,
    command_line: str | None = None,
    memory_bytes: int = 0,
    status: ProcessStatus = ProcessStatus.SLEEPING,
) -> ProcessRecord:
    """Create a ProcessRecord for testing with sensible defaults."""
    name = name if name is not None else f"proc{pid}"
    return ProcessRecord(
        pid=pid,
        ppid=ppid,
        name=name,
        command_line=command_line if command_line is not None else f"/usr/bin/{name}",
        cpu_usage=cpu,
        memory_bytes=memory_bytes,
        memory_percent=0.0,
        status=status,
    )


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor(clock: FakeClock) -> SystemMonitor:
    """SystemMonitor on the live system, without battery/connection probes."""
    return SystemMonitor(
        battery_probe=NullBatteryProbe(),
        connection_probe=NullConnectionProbe(),
        clock=clock,
    )
