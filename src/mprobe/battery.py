"""Battery probes and the parsers behind them.

Linux exposes batteries as key/value files under ``/sys/class/power_supply``;
macOS only offers the free-form output of ``pmset -g batt``. Both end up as
BatteryRecord values. Parsing never raises: a field that cannot be found is
left at its default.
"""

import re
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

import structlog

from mprobe.classify import pmset_battery_state, sysfs_battery_state
from mprobe.models import BatteryRecord, BatteryState

log = structlog.get_logger()

POWER_SUPPLY_ROOT = Path("/sys/class/power_supply")
POWER_SUPPLY_FIELDS = (
    "type",
    "capacity",
    "status",
    "energy_now",
    "charge_now",
    "power_now",
    "current_now",
    "energy_full",
    "charge_full",
)

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*$")
_DURATION_RE = re.compile(r"(\d+):(\d+)\s+(?:remaining|until charged)")


def _read_int(values: Mapping[str, str], *keys: str) -> int | None:
    """First of ``keys`` that holds an integer."""
    for key in keys:
        raw = values.get(key)
        if raw is None:
            continue
        try:
            return int(raw.strip())
        except ValueError:
            continue
    return None


def _seconds(amount: int, rate: int | None) -> int | None:
    if rate is None or rate <= 0:
        return None
    return int(amount / rate * 3600)


def parse_power_supply(values: Mapping[str, str]) -> BatteryRecord:
    """
    Build a BatteryRecord from one power_supply directory's files.

    Remaining time needs both a draw rate and an energy figure; with no
    positive rate it is reported as absent rather than zero.
    """
    try:
        percentage = float(values.get("capacity", "").strip())
    except ValueError:
        percentage = 0.0

    state = sysfs_battery_state(values.get("status"))
    energy_now = _read_int(values, "energy_now", "charge_now")
    rate = _read_int(values, "power_now", "current_now")
    energy_full = _read_int(values, "energy_full", "charge_full")

    time_to_empty = None
    time_to_full = None
    if state is BatteryState.DISCHARGING and energy_now is not None:
        time_to_empty = _seconds(energy_now, rate)
    elif state is BatteryState.CHARGING and energy_now is not None and energy_full is not None:
        time_to_full = _seconds(max(energy_full - energy_now, 0), rate)

    return BatteryRecord(
        percentage=percentage,
        state=state,
        time_to_empty=time_to_empty,
        time_to_full=time_to_full,
    )


def parse_duration(text: str) -> int | None:
    """Seconds from an ``H:MM remaining`` / ``H:MM until charged`` phrase."""
    match = _DURATION_RE.search(text)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    return hours * 3600 + minutes * 60


def parse_pmset_line(line: str) -> BatteryRecord:
    """Parse one ``-InternalBattery-0 ... 95%; discharging; 5:30 remaining`` line."""
    percentage = 0.0
    pct_pos = line.find("%")
    if pct_pos != -1:
        match = _PERCENT_RE.search(line[:pct_pos])
        if match is not None:
            percentage = float(match.group(1))

    state = pmset_battery_state(line, percentage)
    remaining = parse_duration(line)

    return BatteryRecord(
        percentage=percentage,
        state=state,
        time_to_empty=remaining if state is BatteryState.DISCHARGING else None,
        time_to_full=remaining if state is BatteryState.CHARGING else None,
    )


def parse_pmset_output(output: str) -> list[BatteryRecord]:
    """Parse the full ``pmset -g batt`` output; one record per internal battery."""
    return [parse_pmset_line(line) for line in output.splitlines() if "InternalBattery" in line]


class BatteryProbe(Protocol):
    """Platform strategy that reads all batteries."""

    def read(self) -> list[BatteryRecord]: ...


class SysfsBatteryProbe:
    """Reads batteries from ``/sys/class/power_supply`` (Linux)."""

    def __init__(self, root: Path = POWER_SUPPLY_ROOT) -> None:
        self._root = root

    def read(self) -> list[BatteryRecord]:
        try:
            entries = sorted(self._root.iterdir())
        except OSError as e:
            log.debug("battery_probe_unavailable", root=str(self._root), error=str(e))
            return []

        batteries: list[BatteryRecord] = []
        for entry in entries:
            values = self._read_values(entry)
            if values.get("type", "").strip() != "Battery":
                continue
            batteries.append(parse_power_supply(values))
        return batteries

    @staticmethod
    def _read_values(entry: Path) -> dict[str, str]:
        values: dict[str, str] = {}
        for name in POWER_SUPPLY_FIELDS:
            try:
                values[name] = (entry / name).read_text()
            except (OSError, UnicodeDecodeError):
                continue
        return values


class PmsetBatteryProbe:
    """Runs ``pmset -g batt`` (macOS)."""

    command = ("pmset", "-g", "batt")

    def read(self) -> list[BatteryRecord]:
        try:
            completed = subprocess.run(self.command, capture_output=True, check=False)
            output = completed.stdout.decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.warning("battery_probe_failed", command=" ".join(self.command), error=str(e))
            return []
        return parse_pmset_output(output)


class NullBatteryProbe:
    """Used on platforms without a battery source."""

    def read(self) -> list[BatteryRecord]:
        return []


def select_battery_probe(platform: str | None = None) -> BatteryProbe:
    """Pick the battery probe for ``platform`` (defaults to ``sys.platform``)."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return SysfsBatteryProbe()
    if platform == "darwin":
        return PmsetBatteryProbe()
    return NullBatteryProbe()
