"""Data models for mprobe."""

from dataclasses import dataclass, field
from enum import Enum


class ProcessStatus(Enum):
    """Coarse process state shown in the status column."""

    RUNNING = "Running"
    SLEEPING = "Sleeping"
    IDLE = "Idle"
    ZOMBIE = "Zombie"
    OTHER = "Other"


class SortColumn(Enum):
    """Columns the process list can be sorted by, in cycle order."""

    PID = "pid"
    NAME = "name"
    CPU = "cpu"
    MEMORY = "memory"


class KillSignal(Enum):
    """Signal kinds for process termination requests."""

    TERM = "graceful"
    KILL = "forceful"


class BatteryState(Enum):
    """Battery charge state."""

    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    FULL = "Full"
    NOT_CHARGING = "Not Charging"
    UNKNOWN = "Unknown"


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable view of one process for a single tick."""

    pid: int
    ppid: int | None
    name: str
    command_line: str
    cpu_usage: float  # 0.0 - 100.0 * core_count
    memory_bytes: int
    memory_percent: float
    status: ProcessStatus
    user: str = ""
    depth: int = 0  # Tree indentation, 0 in flat view


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Ordered process view plus counts over the full process set."""

    records: tuple[ProcessRecord, ...]
    total: int
    running: int

    def __len__(self) -> int:
        return len(self.records)


@dataclass(slots=True, frozen=True)
class InterfaceRate:
    """Throughput of one network interface."""

    name: str
    received: int  # Cumulative bytes
    transmitted: int
    down: float  # Bytes per second
    up: float


@dataclass(slots=True, frozen=True)
class NetworkRates:
    """Per-interface and aggregate network throughput for one tick."""

    interfaces: tuple[InterfaceRate, ...] = ()
    down: float = 0.0
    up: float = 0.0
    total_received: int = 0
    total_transmitted: int = 0


@dataclass(slots=True, frozen=True)
class BatteryRecord:
    """One battery as reported by the platform probe."""

    percentage: float
    state: BatteryState
    time_to_empty: int | None = None  # Seconds
    time_to_full: int | None = None


@dataclass(slots=True, frozen=True)
class ConnectionRecord:
    """One socket row from the connection probe."""

    protocol: str  # TCP, UDP
    local_address: str
    remote_address: str
    state: str
    pid: int | None = None
    process_name: str | None = None


@dataclass(slots=True, frozen=True)
class ConnectionTable:
    """Connections partitioned into listening sockets and active ones."""

    listening: tuple[ConnectionRecord, ...] = ()
    active: tuple[ConnectionRecord, ...] = ()


@dataclass(slots=True, frozen=True)
class CpuStats:
    """Overall and per-core CPU usage."""

    total_usage: float = 0.0
    per_core: tuple[float, ...] = ()
    frequency_mhz: float = 0.0

    @property
    def core_count(self) -> int:
        return len(self.per_core)


@dataclass(slots=True, frozen=True)
class MemoryStats:
    """Physical memory and swap usage in bytes."""

    total: int = 0
    used: int = 0
    available: int = 0
    free: int = 0
    percent: float = 0.0
    swap_total: int = 0
    swap_used: int = 0
    swap_free: int = 0
    swap_percent: float = 0.0
    cached: int = 0
    buffers: int = 0


@dataclass(slots=True, frozen=True)
class DiskRecord:
    """Usage of one mounted filesystem."""

    name: str
    mount_point: str
    fs_type: str
    total: int
    used: int
    available: int
    used_percent: float


@dataclass(slots=True, frozen=True)
class SensorRecord:
    """One temperature sensor reading in degrees Celsius."""

    label: str
    temperature: float
    critical: float | None = None


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Host identification and uptime."""

    hostname: str = "Unknown"
    os_name: str = "Unknown"
    kernel_version: str = "Unknown"
    uptime_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class HistoryView:
    """Oldest-to-newest history series captured at the end of a tick."""

    cpu: tuple[float, ...] = ()
    memory: tuple[float, ...] = ()
    net_up: tuple[float, ...] = ()
    net_down: tuple[float, ...] = ()


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Everything the renderer needs for one tick."""

    cpu: CpuStats
    memory: MemoryStats
    network: NetworkRates
    processes: ProcessSnapshot
    history: HistoryView
    disks: tuple[DiskRecord, ...] = ()
    sensors: tuple[SensorRecord, ...] = ()
    batteries: tuple[BatteryRecord, ...] = ()
    connections: ConnectionTable = field(default_factory=ConnectionTable)
    system: SystemInfo = field(default_factory=SystemInfo)
