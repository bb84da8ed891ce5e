"""Lookup tables that map raw OS strings onto mprobe enums and severity levels.

Every string coming from psutil, sysfs, ``pmset`` or ``ss``/``netstat`` is
classified here so the parsers and collectors stay free of scattered
substring checks.
"""

import math

from mprobe.models import BatteryState, ProcessStatus

# psutil.STATUS_* values
PROCESS_STATUS: dict[str, ProcessStatus] = {
    "running": ProcessStatus.RUNNING,
    "waking": ProcessStatus.RUNNING,
    "sleeping": ProcessStatus.SLEEPING,
    "disk-sleep": ProcessStatus.SLEEPING,
    "waiting": ProcessStatus.SLEEPING,
    "idle": ProcessStatus.IDLE,
    "parked": ProcessStatus.IDLE,
    "zombie": ProcessStatus.ZOMBIE,
    "dead": ProcessStatus.ZOMBIE,
}

# /sys/class/power_supply/*/status
SYSFS_BATTERY_STATUS: dict[str, BatteryState] = {
    "Charging": BatteryState.CHARGING,
    "Discharging": BatteryState.DISCHARGING,
    "Full": BatteryState.FULL,
    "Not charging": BatteryState.NOT_CHARGING,
}

LISTEN_STATE = "LISTEN"

# ss and netstat spell the same TCP states differently
ACTIVE_CONNECTION_STATES: frozenset[str] = frozenset(
    {
        "ESTAB",
        "ESTABLISHED",
        "CLOSE-WAIT",
        "CLOSE_WAIT",
        "CLOSING",
        "TIME-WAIT",
        "TIME_WAIT",
    }
)

WILDCARD_ADDRESSES: frozenset[str] = frozenset({"*", "*:*", "*.*"})

# (upper bound exclusive, level); level 3 above the last bound
USAGE_LEVELS: tuple[float, ...] = (30.0, 60.0, 85.0)
TEMPERATURE_RATIOS: tuple[float, ...] = (0.5, 0.7, 0.85)
DEFAULT_CRITICAL_TEMPERATURE = 85.0


def process_status(raw: str | None) -> ProcessStatus:
    """Map a psutil status string to a ProcessStatus."""
    if not raw:
        return ProcessStatus.OTHER
    return PROCESS_STATUS.get(raw.lower(), ProcessStatus.OTHER)


def sysfs_battery_state(raw: str | None) -> BatteryState:
    """Map a power_supply ``status`` value to a BatteryState."""
    if raw is None:
        return BatteryState.UNKNOWN
    return SYSFS_BATTERY_STATUS.get(raw.strip(), BatteryState.UNKNOWN)


def pmset_battery_state(line: str, percentage: float) -> BatteryState:
    """Classify a ``pmset -g batt`` battery line.

    Precedence: discharging, charging, charged (or 100%), not charging.
    """
    text = line.lower()
    if "discharging" in text:
        return BatteryState.DISCHARGING
    if "charging" in text and "not charging" not in text:
        return BatteryState.CHARGING
    if "charged" in text or percentage >= 100.0:
        return BatteryState.FULL
    if "not charging" in text:
        return BatteryState.NOT_CHARGING
    return BatteryState.UNKNOWN


def is_wildcard_address(address: str) -> bool:
    """Return True for a remote address that matches any peer."""
    return address in WILDCARD_ADDRESSES or address.endswith(":*")


def connection_bucket(state: str, remote_address: str) -> str | None:
    """Return ``"listening"``, ``"active"`` or None for rows to drop."""
    if state.upper() == LISTEN_STATE or is_wildcard_address(remote_address):
        return "listening"
    if state.upper() in ACTIVE_CONNECTION_STATES:
        return "active"
    return None


def _level(value: float, bounds: tuple[float, ...]) -> int:
    for index, bound in enumerate(bounds):
        if value < bound:
            return index
    return len(bounds)


def usage_level(percent: float) -> int:
    """Severity 0 (green) to 3 (red) for a usage percentage."""
    if math.isnan(percent):
        return 0
    return _level(percent, USAGE_LEVELS)


def temperature_level(temperature: float, critical: float | None = None) -> int:
    """Severity 0 (cool) to 3 (critical) relative to the critical threshold."""
    threshold = critical if critical else DEFAULT_CRITICAL_TEMPERATURE
    return _level(temperature / threshold, TEMPERATURE_RATIOS)
