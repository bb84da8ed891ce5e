"""Tests for battery parsers and probes."""

from mprobe.battery import (
    NullBatteryProbe,
    PmsetBatteryProbe,
    SysfsBatteryProbe,
    parse_duration,
    parse_pmset_line,
    parse_pmset_output,
    parse_power_supply,
    select_battery_probe,
)
from mprobe.models import BatteryState

PMSET_OUTPUT = """Now drawing from 'Battery Power'
 -InternalBattery-0 (id=4653155)\t87%; discharging; 3:15 remaining present: true
"""


class TestParsePmset:
    """Tests for the pmset text parser."""

    def test_discharging_line(self):
        """Percentage, state and time to empty are read from one line."""
        battery = parse_pmset_line(" -InternalBattery-0 (id=4653155)\t87%; discharging; 3:15 remaining present: true")

        assert battery.percentage == 87.0
        assert battery.state is BatteryState.DISCHARGING
        assert battery.time_to_empty == 11700
        assert battery.time_to_full is None

    def test_charging_line(self):
        """While charging the duration is time to full."""
        battery = parse_pmset_line(" -InternalBattery-0 (id=1)\t42%; charging; 1:05 until charged present: true")

        assert battery.state is BatteryState.CHARGING
        assert battery.time_to_full == 3900
        assert battery.time_to_empty is None

    def test_estimate_pending(self):
        """'(no estimate)' leaves both times absent."""
        battery = parse_pmset_line(" -InternalBattery-0 (id=1)\t55%; discharging; (no estimate) present: true")

        assert battery.percentage == 55.0
        assert battery.time_to_empty is None

    def test_malformed_line(self):
        """A line with nothing recognisable yields defaults, not an error."""
        battery = parse_pmset_line("InternalBattery garbage")

        assert battery.percentage == 0.0
        assert battery.state is BatteryState.UNKNOWN
        assert battery.time_to_empty is None
        assert battery.time_to_full is None

    def test_output_keeps_battery_lines_only(self):
        """The 'Now drawing from' header is skipped."""
        batteries = parse_pmset_output(PMSET_OUTPUT)

        assert len(batteries) == 1
        assert batteries[0].percentage == 87.0

    def test_parse_duration(self):
        assert parse_duration("0:45 remaining") == 2700
        assert parse_duration("2:00 until charged") == 7200
        assert parse_duration("soon") is None


class TestParsePowerSupply:
    """Tests for the sysfs power_supply parser."""

    def test_discharging_energy(self):
        """Time to empty is energy divided by draw."""
        battery = parse_power_supply(
            {
                "capacity": "64\n",
                "status": "Discharging\n",
                "energy_now": "30000000\n",
                "power_now": "10000000\n",
            }
        )

        assert battery.percentage == 64.0
        assert battery.state is BatteryState.DISCHARGING
        assert battery.time_to_empty == 10800
        assert battery.time_to_full is None

    def test_charging_charge_counters(self):
        """charge_*/current_now are used when energy_* are missing."""
        battery = parse_power_supply(
            {
                "capacity": "50",
                "status": "Charging",
                "charge_now": "2000000",
                "charge_full": "4000000",
                "current_now": "1000000",
            }
        )

        assert battery.state is BatteryState.CHARGING
        assert battery.time_to_full == 7200
        assert battery.time_to_empty is None

    def test_zero_draw_gives_no_estimate(self):
        """A zero rate never divides; the time is absent."""
        battery = parse_power_supply(
            {"capacity": "90", "status": "Discharging", "energy_now": "100", "power_now": "0"}
        )
        assert battery.time_to_empty is None

    def test_missing_fields(self):
        """Unreadable capacity falls back to 0 and unknown state."""
        battery = parse_power_supply({"capacity": "n/a"})

        assert battery.percentage == 0.0
        assert battery.state is BatteryState.UNKNOWN


class TestProbes:
    """Tests for the battery probe strategies."""

    def test_sysfs_probe_reads_batteries_only(self, tmp_path):
        """Only power_supply entries of type Battery are reported."""
        bat = tmp_path / "BAT0"
        bat.mkdir()
        (bat / "type").write_text("Battery\n")
        (bat / "capacity").write_text("73\n")
        (bat / "status").write_text("Full\n")

        ac = tmp_path / "AC"
        ac.mkdir()
        (ac / "type").write_text("Mains\n")

        batteries = SysfsBatteryProbe(root=tmp_path).read()

        assert len(batteries) == 1
        assert batteries[0].percentage == 73.0
        assert batteries[0].state is BatteryState.FULL

    def test_sysfs_probe_missing_root(self, tmp_path):
        """A machine without power_supply reports no batteries."""
        assert SysfsBatteryProbe(root=tmp_path / "missing").read() == []

    def test_pmset_probe_missing_tool(self, monkeypatch):
        """A missing pmset binary yields no batteries instead of raising."""
        monkeypatch.setattr(PmsetBatteryProbe, "command", ("mprobe-no-such-tool-xyz",))
        assert PmsetBatteryProbe().read() == []

    def test_null_probe(self):
        assert NullBatteryProbe().read() == []

    def test_select_probe(self):
        assert isinstance(select_battery_probe("linux"), SysfsBatteryProbe)
        assert isinstance(select_battery_probe("darwin"), PmsetBatteryProbe)
        assert isinstance(select_battery_probe("win32"), NullBatteryProbe)
