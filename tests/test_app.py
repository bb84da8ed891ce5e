"""Tests for mprobe application."""

from dataclasses import replace

import pytest
from conftest import make_record
from textual.widgets import DataTable, Input, Sparkline

from mprobe.app import ConnectionsTable, HeaderStats, MprobeApp, ProcessTable
from mprobe.config import Config
from mprobe.models import (
    BatteryRecord,
    BatteryState,
    ConnectionRecord,
    ConnectionTable,
    CpuStats,
    HistoryView,
    KillSignal,
    MemoryStats,
    NetworkRates,
    ProcessSnapshot,
    SortColumn,
    SystemSnapshot,
)
from mprobe.monitor import ViewSettings


@pytest.fixture
def app(monitor) -> MprobeApp:
    """App with a long refresh interval so only the mount tick runs."""
    return MprobeApp(Config(update_interval=60_000), monitor=monitor)


def _snapshot() -> SystemSnapshot:
    return SystemSnapshot(
        cpu=CpuStats(total_usage=15.0, per_core=(10.0, 20.0)),
        memory=MemoryStats(total=16 * 1024**3, used=8 * 1024**3, percent=50.0),
        network=NetworkRates(down=1600.0, up=0.0),
        processes=ProcessSnapshot(records=(make_record(100, name="test1"),), total=1, running=0),
        history=HistoryView(cpu=(1.0, 2.0), memory=(3.0, 4.0), net_up=(0.0, 0.0), net_down=(5.0, 6.0)),
        batteries=(BatteryRecord(percentage=87.0, state=BatteryState.DISCHARGING, time_to_empty=11700),),
        connections=ConnectionTable(
            listening=(
                ConnectionRecord(
                    protocol="TCP",
                    local_address="0.0.0.0:22",
                    remote_address="0.0.0.0:*",
                    state="LISTEN",
                    pid=1234,
                    process_name="sshd",
                ),
            )
        ),
    )


@pytest.mark.asyncio
async def test_app_creation():
    """Test MprobeApp can be instantiated."""
    app = MprobeApp()
    assert app.title == "mprobe"
    assert app.sub_title == "System Monitor"


def test_config_seeds_view_settings():
    """Sort settings from the config file become the initial view."""
    app = MprobeApp(Config(sort_by="memory", sort_ascending=True))

    assert app.settings.sort_column is SortColumn.MEMORY
    assert app.settings.sort_ascending is True


@pytest.mark.asyncio
async def test_app_compose(app):
    """Test MprobeApp composes correctly."""
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#connections-table") is not None
        assert pilot.app.query_one("#history-cpu", Sparkline) is not None


@pytest.mark.asyncio
async def test_mount_tick_fills_table(app):
    """The first sample is shown as soon as the app starts."""
    async with app.run_test() as pilot:
        await pilot.pause()
        process_table = pilot.app.query_one(ProcessTable)

        assert len(process_table.records) > 0
        assert pilot.app.query_one("#process-table", DataTable).row_count == len(process_table.records)


@pytest.mark.asyncio
async def test_app_quit_binding(app):
    """Test that 'q' binding triggers quit."""
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit


@pytest.mark.asyncio
async def test_sort_bindings(app):
    """'s' cycles the sort column and 'r' flips the order."""
    async with app.run_test() as pilot:
        assert pilot.app.settings.sort_column is SortColumn.CPU

        await pilot.press("s")
        assert pilot.app.settings.sort_column is SortColumn.MEMORY

        await pilot.press("s")
        assert pilot.app.settings.sort_column is SortColumn.PID

        await pilot.press("r")
        assert pilot.app.settings.sort_ascending is True

        pids = [r.pid for r in pilot.app.query_one(ProcessTable).records]
        assert pids == sorted(pids)


@pytest.mark.asyncio
async def test_tree_binding(app):
    """'t' switches the process list to tree view."""
    async with app.run_test() as pilot:
        await pilot.press("t")

        assert pilot.app.settings.tree_active
        assert "(tree)" in pilot.app.query_one(ProcessTable).border_title


@pytest.mark.asyncio
async def test_filter_and_escape(app):
    """Typing a filter narrows the list; escape clears it."""
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("slash")
        assert pilot.app.query_one("#filter-input", Input).display

        await pilot.press("z", "z", "v", "w")
        await pilot.pause()
        assert pilot.app.settings.filter_text == "zzvw"
        assert pilot.app.query_one(ProcessTable).records == ()

        await pilot.press("escape")
        assert pilot.app.settings.filter_text == ""
        assert len(pilot.app.query_one(ProcessTable).records) > 0


@pytest.mark.asyncio
async def test_selection_bindings(app):
    """'j' and 'k' step through the list, 'g' and 'G' jump to its ends."""
    async with app.run_test() as pilot:
        await pilot.pause()
        last = len(pilot.app.query_one(ProcessTable).records) - 1

        await pilot.press("k")
        await pilot.pause()
        assert pilot.app.settings.selected == 0

        await pilot.press("G")
        await pilot.pause()
        assert pilot.app.settings.selected == last

        await pilot.press("j")
        await pilot.pause()
        assert pilot.app.settings.selected == last

        await pilot.press("k")
        await pilot.pause()
        assert pilot.app.settings.selected == max(last - 1, 0)

        await pilot.press("g")
        await pilot.pause()
        await pilot.press("j")
        await pilot.pause()
        assert pilot.app.settings.selected == min(1, last)


@pytest.mark.asyncio
async def test_toggle_connections(app):
    """'c' swaps the process list for the connection list and back."""
    async with app.run_test() as pilot:
        connections = pilot.app.query_one(ConnectionsTable)
        processes = pilot.app.query_one(ProcessTable)
        assert not connections.display

        await pilot.press("c")
        assert connections.display
        assert not processes.display

        await pilot.press("c")
        assert not connections.display
        assert processes.display


@pytest.mark.asyncio
async def test_terminate_requires_confirmation(app, monitor, monkeypatch):
    """'x' only signals after 'y'; 'n' cancels."""
    sent = []
    monkeypatch.setattr(monitor, "request_termination", lambda pid, signal: sent.append((pid, signal)) or True)

    async with app.run_test() as pilot:
        await pilot.pause()
        selected = pilot.app.query_one(ProcessTable).records[pilot.app.settings.selected]

        await pilot.press("x")
        assert sent == []

        await pilot.press("n")
        await pilot.press("y")
        assert sent == []

        pilot.app.action_terminate(True)
        await pilot.press("y")
        assert sent == [(selected.pid, KillSignal.KILL)]


@pytest.mark.asyncio
async def test_update_ui_with_fabricated_snapshot(app):
    """Every panel accepts a hand-built snapshot."""
    async with app.run_test() as pilot:
        pilot.app._update_ui(_snapshot())
        await pilot.pause()

        header = pilot.app.query_one("#header-stats", HeaderStats)
        assert "87% Discharging" in header._get_system_info()
        assert "3h 15m left" in header._get_system_info()
        assert "1.6 KB/s" in header._get_mem_info()

        assert pilot.app.query_one("#history-net-down", Sparkline).data == [5.0, 6.0]
        assert pilot.app.query_one("#connections-table", DataTable).row_count == 1
        assert [r.pid for r in pilot.app.query_one(ProcessTable).records] == [100]


def test_tree_row_prefix():
    """Nested processes are indented under their parent."""
    child = replace(make_record(3, ppid=2, name="worker"), depth=2)

    row = ProcessTable._row(child, tree=True)
    assert row[1] == "  └─ worker"

    flat = ProcessTable._row(child, tree=False)
    assert flat[1] == "worker"


def test_process_table_title():
    processes = ProcessSnapshot(records=(make_record(1),), total=5, running=1)
    settings = ViewSettings(filter_text="bash", sort_column=SortColumn.NAME, sort_ascending=True)

    title = ProcessTable._title(processes, settings)

    assert title == "Processes (1/5) sort: Name ▲ filter: bash"
