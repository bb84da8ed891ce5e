"""System monitoring engine for mprobe."""

import platform
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace

import psutil
import structlog

from mprobe.battery import BatteryProbe, select_battery_probe
from mprobe.classify import process_status
from mprobe.connections import ConnectionProbe, select_connection_probe
from mprobe.hierarchy import build_process_view
from mprobe.history import MetricHistory
from mprobe.models import (
    BatteryRecord,
    ConnectionTable,
    CpuStats,
    DiskRecord,
    KillSignal,
    MemoryStats,
    ProcessRecord,
    ProcessSnapshot,
    ProcessStatus,
    SensorRecord,
    SortColumn,
    SystemInfo,
    SystemSnapshot,
)
from mprobe.rates import RateCalculator

log = structlog.get_logger()

MAX_SENSORS = 8

SORT_CYCLE = (SortColumn.PID, SortColumn.NAME, SortColumn.CPU, SortColumn.MEMORY)


@dataclass
class ViewSettings:
    """User-controlled presentation of the process list."""

    filter_text: str = ""
    tree_view: bool = False
    sort_column: SortColumn = SortColumn.CPU
    sort_ascending: bool = False
    selected: int = 0

    @property
    def tree_active(self) -> bool:
        """Tree view only applies while no filter is set."""
        return self.tree_view and not self.filter_text

    def set_filter(self, text: str) -> None:
        self.filter_text = text
        self.selected = 0

    def clear_filter(self) -> None:
        self.set_filter("")

    def toggle_tree_view(self) -> None:
        self.tree_view = not self.tree_view

    def cycle_sort(self) -> SortColumn:
        """Advance Pid -> Name -> Cpu -> Memory -> Pid."""
        index = SORT_CYCLE.index(self.sort_column)
        self.sort_column = SORT_CYCLE[(index + 1) % len(SORT_CYCLE)]
        self.selected = 0
        return self.sort_column

    def toggle_sort_order(self) -> None:
        self.sort_ascending = not self.sort_ascending
        self.selected = 0

    def clamp_selection(self, length: int) -> int:
        """Bound the selection to [0, length - 1]; 0 for an empty list."""
        self.selected = max(0, min(self.selected, length - 1))
        return self.selected

    def move_selection(self, delta: int, length: int) -> int:
        self.selected += delta
        return self.clamp_selection(length)

    def select_first(self) -> None:
        self.selected = 0

    def select_last(self, length: int) -> None:
        self.selected = max(length - 1, 0)


@dataclass
class EngineState:
    """Cross-tick mutable state: previous counters and chart history."""

    rates: RateCalculator = field(default_factory=RateCalculator)
    history: MetricHistory = field(default_factory=MetricHistory)


@dataclass
class RawSample:
    """Everything collected from the OS during one tick."""

    timestamp: float
    cpu: CpuStats = field(default_factory=CpuStats)
    memory: MemoryStats = field(default_factory=MemoryStats)
    net_counters: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    processes: list[ProcessRecord] = field(default_factory=list)
    disks: list[DiskRecord] = field(default_factory=list)
    sensors: list[SensorRecord] = field(default_factory=list)
    batteries: list[BatteryRecord] = field(default_factory=list)
    connections: ConnectionTable = field(default_factory=ConnectionTable)
    system: SystemInfo = field(default_factory=SystemInfo)


def build_process_snapshot(
    processes: list[ProcessRecord], settings: ViewSettings
) -> ProcessSnapshot:
    """Apply the view settings to a flat process table."""
    records = build_process_view(
        processes,
        filter_text=settings.filter_text,
        sort_column=settings.sort_column,
        ascending=settings.sort_ascending,
        tree_view=settings.tree_view,
    )
    settings.clamp_selection(len(records))
    return ProcessSnapshot(
        records=tuple(records),
        total=len(processes),
        running=sum(1 for p in processes if p.status is ProcessStatus.RUNNING),
    )


def build_snapshot(state: EngineState, raw: RawSample, settings: ViewSettings) -> SystemSnapshot:
    """
    Turn one tick's raw sample into a SystemSnapshot.

    Updates ``state`` in place: the rate calculator remembers this tick's
    counters and every history series gains one sample.
    """
    network = state.rates.update(raw.net_counters, raw.timestamp)
    state.history.push(
        cpu=raw.cpu.total_usage,
        memory=raw.memory.percent,
        net_up=network.up,
        net_down=network.down,
    )

    return SystemSnapshot(
        cpu=raw.cpu,
        memory=raw.memory,
        network=network,
        processes=build_process_snapshot(raw.processes, settings),
        history=state.history.view(),
        disks=tuple(raw.disks),
        sensors=tuple(raw.sensors),
        batteries=tuple(raw.batteries),
        connections=raw.connections,
        system=raw.system,
    )


class SystemMonitor:
    """
    System monitor that collects system data using psutil and the platform probes.

    Runs synchronously: every call to ``tick()`` performs one blocking round
    of collection and returns a fresh snapshot. Collection failures are
    logged and the failing item is skipped.
    """

    def __init__(
        self,
        settings: ViewSettings | None = None,
        battery_probe: BatteryProbe | None = None,
        connection_probe: ConnectionProbe | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            settings: View settings shared with the UI.
            battery_probe: Battery strategy; platform default when None.
            connection_probe: Connection strategy; platform default when None.
            clock: Monotonic time source used for rate calculation.
        """
        self.settings = settings or ViewSettings()
        self.state = EngineState()
        self._battery_probe = battery_probe or select_battery_probe()
        self._connection_probe = connection_probe or select_connection_probe()
        self._clock = clock
        self._last_raw: RawSample | None = None
        self._last_snapshot: SystemSnapshot | None = None
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_percent(percpu=True)

    @property
    def last_snapshot(self) -> SystemSnapshot | None:
        """The snapshot produced by the most recent tick."""
        return self._last_snapshot

    def tick(self) -> SystemSnapshot:
        """Collect one round of data and build the snapshot for it."""
        raw = self.collect()
        self._last_raw = raw
        self._last_snapshot = build_snapshot(self.state, raw, self.settings)
        return self._last_snapshot

    def rebuild_view(self) -> ProcessSnapshot | None:
        """
        Re-run the process view on the last tick's data after a settings change.

        Returns None before the first tick.
        """
        if self._last_raw is None or self._last_snapshot is None:
            return None
        processes = build_process_snapshot(self._last_raw.processes, self.settings)
        self._last_snapshot = replace(self._last_snapshot, processes=processes)
        return processes

    def collect(self) -> RawSample:
        """Collect a raw sample of the current system state."""
        return RawSample(
            timestamp=self._clock(),
            cpu=self._collect_cpu(),
            memory=self._collect_memory(),
            net_counters=self._collect_net_counters(),
            processes=self._collect_processes(),
            disks=self._collect_disks(),
            sensors=self._collect_sensors(),
            batteries=self._battery_probe.read(),
            connections=self._connection_probe.read(),
            system=self._collect_system_info(),
        )

    def _collect_cpu(self) -> CpuStats:
        # Non-blocking, uses previous call's data
        per_core = psutil.cpu_percent(percpu=True)
        total = sum(per_core) / len(per_core) if per_core else 0.0
        try:
            freq = psutil.cpu_freq()
        except (OSError, NotImplementedError):
            freq = None
        return CpuStats(
            total_usage=total,
            per_core=tuple(per_core),
            frequency_mhz=freq.current if freq else 0.0,
        )

    def _collect_memory(self) -> MemoryStats:
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemoryStats(
            total=mem.total,
            used=mem.used,
            available=mem.available,
            free=mem.free,
            percent=mem.percent,
            swap_total=swap.total,
            swap_used=swap.used,
            swap_free=swap.free,
            swap_percent=swap.percent,
            # Linux only
            cached=getattr(mem, "cached", 0),
            buffers=getattr(mem, "buffers", 0),
        )

    def _collect_net_counters(self) -> dict[str, tuple[int, int]]:
        try:
            counters = psutil.net_io_counters(pernic=True)
        except OSError as e:
            log.warning("net_counters_failed", error=str(e))
            return {}
        return {name: (c.bytes_recv, c.bytes_sent) for name, c in counters.items()}

    def _collect_processes(self) -> list[ProcessRecord]:
        """
        Collect records for all running processes.

        Uses psutil.process_iter() with oneshot() context manager for efficiency.
        Processes that vanish mid-poll are skipped; unreadable fields fall
        back to defaults so the process is still listed.
        """
        processes: list[ProcessRecord] = []

        # Attributes to fetch in oneshot
        attrs = [
            "pid",
            "ppid",
            "name",
            "username",
            "status",
            "cpu_percent",
            "memory_percent",
            "memory_info",
            "cmdline",
        ]

        for proc in psutil.process_iter(attrs=attrs, ad_value=None):
            try:
                with proc.oneshot():
                    info = proc.info
                    processes.append(_record_from_info(info))
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                log.debug("process_unreadable", pid=proc.pid)
                processes.append(_record_from_info({"pid": proc.pid}))

        return processes

    def _collect_disks(self) -> list[DiskRecord]:
        disks: list[DiskRecord] = []
        try:
            partitions = psutil.disk_partitions(all=False)
        except OSError as e:
            log.warning("disk_partitions_failed", error=str(e))
            return disks

        for part in partitions:
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as e:
                log.debug("disk_usage_failed", mount_point=part.mountpoint, error=str(e))
                continue
            used = max(usage.total - usage.free, 0)
            disks.append(
                DiskRecord(
                    name=part.device or part.mountpoint,
                    mount_point=part.mountpoint,
                    fs_type=part.fstype,
                    total=usage.total,
                    used=used,
                    available=usage.free,
                    used_percent=(used / usage.total * 100.0) if usage.total else 0.0,
                )
            )

        disks.sort(key=lambda d: d.mount_point)
        return disks

    def _collect_sensors(self) -> list[SensorRecord]:
        read_temperatures = getattr(psutil, "sensors_temperatures", None)
        if read_temperatures is None:
            return []
        try:
            groups = read_temperatures()
        except (OSError, RuntimeError) as e:
            log.debug("sensors_failed", error=str(e))
            return []
        return select_sensors(groups)

    def _collect_system_info(self) -> SystemInfo:
        try:
            uptime = time.time() - psutil.boot_time()
        except OSError:
            uptime = 0.0
        return SystemInfo(
            hostname=platform.node() or "Unknown",
            os_name=platform.system() or "Unknown",
            kernel_version=platform.release() or "Unknown",
            uptime_seconds=uptime,
        )

    def request_termination(self, pid: int, signal: KillSignal) -> bool:
        """
        Ask the OS to terminate ``pid``.

        The current snapshot is left untouched; the process disappears from
        the list on a later tick, if at all.
        """
        try:
            proc = psutil.Process(pid)
            if signal is KillSignal.KILL:
                proc.kill()
            else:
                proc.terminate()
        except (psutil.Error, ValueError) as e:
            # psutil raises ValueError for negative pids and for pid 0 on POSIX
            log.warning("termination_failed", pid=pid, signal=signal.value, error=str(e))
            return False
        log.info("termination_requested", pid=pid, signal=signal.value)
        return True


def _record_from_info(info: Mapping) -> ProcessRecord:
    """Build a ProcessRecord from a psutil info dict with safe defaults for None values."""
    name = info.get("name") or ""
    # Get command line, handling None/empty cases
    cmdline = info.get("cmdline") or []
    command_line = " ".join(cmdline) if cmdline else name

    mem_info = info.get("memory_info")
    return ProcessRecord(
        pid=info.get("pid", 0),
        ppid=info.get("ppid"),
        name=name,
        command_line=command_line,
        cpu_usage=info.get("cpu_percent") or 0.0,
        memory_bytes=mem_info.rss if mem_info else 0,
        memory_percent=info.get("memory_percent") or 0.0,
        status=process_status(info.get("status")),
        user=info.get("username") or "",
    )


def select_sensors(groups: Mapping[str, list]) -> list[SensorRecord]:
    """Hottest readings first, dropping empty sensors, at most MAX_SENSORS."""
    sensors: list[SensorRecord] = []
    for group, entries in groups.items():
        for entry in entries:
            if not entry.current or entry.current <= 0:
                continue
            sensors.append(
                SensorRecord(
                    label=entry.label or group,
                    temperature=entry.current,
                    critical=entry.critical or None,
                )
            )
    sensors.sort(key=lambda s: s.temperature, reverse=True)
    return sensors[:MAX_SENSORS]
