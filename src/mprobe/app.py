"""mprobe - Main Textual application."""

import structlog
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Label, Sparkline, Static

from mprobe.classify import temperature_level, usage_level
from mprobe.config import Config
from mprobe.formatting import format_bytes, format_duration, format_speed, format_uptime, usage_bar
from mprobe.models import (
    ConnectionTable,
    HistoryView,
    KillSignal,
    ProcessRecord,
    ProcessSnapshot,
    SortColumn,
    SystemSnapshot,
)
from mprobe.monitor import SystemMonitor, ViewSettings

log = structlog.get_logger()

LEVEL_COLORS = ("green", "yellow", "dark_orange", "red")

SORT_LABELS = {
    SortColumn.PID: "PID",
    SortColumn.NAME: "Name",
    SortColumn.CPU: "CPU%",
    SortColumn.MEMORY: "Memory",
}

HELP_TEXT = (
    "q quit | / filter | esc clear | t tree | s sort | r reverse\n"
    "c connections | x terminate | X kill | j/k down/up | g/G top/bottom"
)


class HeaderStats(Static):
    """Header widget showing host, CPU, memory, network and battery."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._snapshot: SystemSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
            Static(self._get_system_info(), id="system-info"),
        )

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Update the statistics from a system snapshot."""
        self._snapshot = snapshot
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
            self.query_one("#system-info", Static).update(self._get_system_info())
        except NoMatches:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        if self._snapshot is None:
            return "Loading CPU info..."
        cpu = self._snapshot.cpu
        color = LEVEL_COLORS[usage_level(cpu.total_usage)]
        lines = [f"CPU \\[{usage_bar(cpu.total_usage, color=color)}] {cpu.total_usage:5.1f}%"]
        for i, usage in enumerate(cpu.per_core[:8]):
            bar = usage_bar(usage, width=10, color=LEVEL_COLORS[usage_level(usage)])
            lines.append(f"  {i:<2} \\[{bar}] {usage:5.1f}%")
        if cpu.core_count > 8:
            lines.append(f"  [dim]+{cpu.core_count - 8} more cores[/dim]")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        """Get memory, swap and network display."""
        if self._snapshot is None:
            return "Loading memory info..."
        mem = self._snapshot.memory
        net = self._snapshot.network
        mem_bar = usage_bar(mem.percent, color="cyan")
        swap_bar = usage_bar(mem.swap_percent if mem.swap_total else 0.0, color="yellow")
        return (
            f"Mem\\[{mem_bar}] {format_bytes(mem.used)}/{format_bytes(mem.total)}\n"
            f"Swp\\[{swap_bar}] {format_bytes(mem.swap_used)}/{format_bytes(mem.swap_total)}\n"
            f"Net [green]↓ {format_speed(net.down)}[/green]  [red]↑ {format_speed(net.up)}[/red]\n"
            f"    [dim]total ↓ {format_bytes(net.total_received)} "
            f"↑ {format_bytes(net.total_transmitted)}[/dim]"
        )

    def _get_system_info(self) -> str:
        """Get host, uptime, task counts and battery display."""
        if self._snapshot is None:
            return ""
        info = self._snapshot.system
        procs = self._snapshot.processes
        lines = [
            f"[bold]{info.hostname}[/bold] {info.os_name} {info.kernel_version}",
            f"Uptime: {format_uptime(info.uptime_seconds)}",
            f"Tasks: {procs.total}, {procs.running} running",
        ]
        for battery in self._snapshot.batteries:
            line = f"Battery: {battery.percentage:.0f}% {battery.state.value}"
            if battery.time_to_empty is not None:
                line += f" ({format_duration(battery.time_to_empty)} left)"
            elif battery.time_to_full is not None:
                line += f" ({format_duration(battery.time_to_full)} to full)"
            lines.append(line)
        return "\n".join(lines)


class HistoryCharts(Container):
    """Sparklines for the rolling CPU, memory and network history."""

    DEFAULT_CSS = """
    HistoryCharts {
        height: 4;
        layout: grid;
        grid-size: 4 2;
        grid-rows: 1 3;
    }
    HistoryCharts Sparkline {
        height: 3;
        margin: 0 1;
    }
    """

    SERIES = ("cpu", "memory", "net_down", "net_up")
    TITLES = ("CPU %", "Mem %", "Net ↓", "Net ↑")

    def compose(self) -> ComposeResult:
        """Compose the chart grid: titles on top, sparklines below."""
        for title in self.TITLES:
            yield Label(title)
        for name in self.SERIES:
            yield Sparkline([0.0], summary_function=max, id=f"history-{name.replace('_', '-')}")

    def update_history(self, history: HistoryView) -> None:
        """Replace every series with the latest history."""
        for name in self.SERIES:
            sparkline = self.query_one(f"#history-{name.replace('_', '-')}", Sparkline)
            sparkline.data = list(getattr(history, name))


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._records: tuple[ProcessRecord, ...] = ()

    @property
    def records(self) -> tuple[ProcessRecord, ...]:
        """Rows currently displayed, in display order."""
        return self._records

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=24)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM%", key="mem", width=7)
        table.add_column("RES", key="rss", width=8)
        table.add_column("S", key="status", width=9)
        table.add_column("USER", key="user", width=10)
        table.add_column("Command", key="command")

    def update_processes(self, processes: ProcessSnapshot, settings: ViewSettings) -> None:
        """
        Show a new process view.

        The row order changes with every tick, so the table is rebuilt
        rather than patched, and the cursor is put back on the selected row.
        """
        table = self.query_one("#process-table", DataTable)
        self._records = processes.records
        table.clear()
        for proc in processes.records:
            table.add_row(*self._row(proc, settings.tree_active))
        if self._records:
            table.move_cursor(row=settings.selected, animate=False)
        self.border_title = self._title(processes, settings)

    @staticmethod
    def _row(proc: ProcessRecord, tree: bool) -> tuple[str, ...]:
        name = proc.name
        if tree and proc.depth > 0:
            name = "  " * (proc.depth - 1) + "└─ " + name
        return (
            str(proc.pid),
            name[:24],
            f"{proc.cpu_usage:5.1f}",
            f"{proc.memory_percent:5.1f}",
            format_bytes(proc.memory_bytes),
            proc.status.value,
            proc.user[:10],
            proc.command_line[:80],
        )

    @staticmethod
    def _title(processes: ProcessSnapshot, settings: ViewSettings) -> str:
        arrow = "▲" if settings.sort_ascending else "▼"
        title = f"Processes ({len(processes)}/{processes.total})"
        if settings.tree_active:
            title += " (tree)"
        else:
            title += f" sort: {SORT_LABELS[settings.sort_column]} {arrow}"
        if settings.filter_text:
            title += " filter: " + settings.filter_text.replace("[", "\\[")
        return title


class ConnectionsTable(Container):
    """Listening and active sockets, hidden until toggled."""

    DEFAULT_CSS = """
    ConnectionsTable {
        height: 1fr;
        border: solid $secondary;
        display: none;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the connections table."""
        yield DataTable(id="connections-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#connections-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Kind", key="kind", width=7)
        table.add_column("Proto", key="proto", width=6)
        table.add_column("Local", key="local", width=28)
        table.add_column("Remote", key="remote", width=28)
        table.add_column("State", key="state", width=12)
        table.add_column("Process", key="process")

    def update_connections(self, connections: ConnectionTable) -> None:
        """Replace the rows with the latest connection table."""
        table = self.query_one("#connections-table", DataTable)
        table.clear()
        for kind, rows in (("listen", connections.listening), ("active", connections.active)):
            for conn in rows:
                owner = ""
                if conn.process_name or conn.pid is not None:
                    owner = f"{conn.process_name or '?'} ({conn.pid if conn.pid is not None else '?'})"
                table.add_row(
                    kind,
                    conn.protocol,
                    conn.local_address,
                    conn.remote_address,
                    conn.state,
                    owner,
                )
        self.border_title = (
            f"Connections ({len(connections.listening)} listening, "
            f"{len(connections.active)} active)"
        )


class DeviceStats(Static):
    """Disk usage and temperature sensors."""

    DEFAULT_CSS = """
    DeviceStats {
        height: auto;
        max-height: 6;
        padding: 0 1;
    }
    """

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Render disks and sensors side by side."""
        disks = [
            f"{d.mount_point[:16]:<16} \\[{usage_bar(d.used_percent, width=10)}] "
            f"{format_bytes(d.used)}/{format_bytes(d.total)}"
            for d in snapshot.disks[:4]
        ]
        sensors = []
        for s in snapshot.sensors[:4]:
            color = LEVEL_COLORS[temperature_level(s.temperature, s.critical)]
            sensors.append(f"{s.label[:14]:<14} [{color}]{s.temperature:5.1f}°C[/{color}]")
        self.update("\n".join(disks + sensors))


class MprobeApp(App):
    """Main mprobe application."""

    TITLE = "mprobe"
    SUB_TITLE = "System Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info, #mem-info, #system-info {
        width: 1fr;
        padding-right: 2;
    }

    #filter-input {
        display: none;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("slash", "filter", "Filter"),
        Binding("escape", "escape", "Clear", show=False),
        ("t", "toggle_tree", "Tree"),
        ("s", "cycle_sort", "Sort"),
        ("r", "reverse_sort", "Reverse"),
        ("c", "toggle_connections", "Connections"),
        ("x", "terminate(False)", "Terminate"),
        Binding("X", "terminate(True)", "Kill", show=False),
        Binding("y", "confirm_kill", "Confirm", show=False),
        Binding("n", "cancel_kill", "Cancel", show=False),
        Binding("j", "select_next", "Down", show=False),
        Binding("k", "select_previous", "Up", show=False),
        Binding("g", "select_first", "Top", show=False),
        Binding("G", "select_last", "Bottom", show=False),
        ("question_mark", "help", "Help"),
    ]

    def __init__(self, config: Config | None = None, monitor: SystemMonitor | None = None) -> None:
        """Initialize the MprobeApp."""
        super().__init__()
        self._config = config or Config()
        if monitor is None:
            settings = ViewSettings(
                sort_column=self._config.sort_column,
                sort_ascending=self._config.sort_ascending,
            )
            monitor = SystemMonitor(settings)
        self._monitor = monitor
        self._pending_kill: tuple[ProcessRecord, KillSignal] | None = None

    @property
    def settings(self) -> ViewSettings:
        """View settings shared with the monitor."""
        return self._monitor.settings

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield HistoryCharts(id="history")
        yield Input(placeholder="Filter by name or command", id="filter-input")
        yield ProcessTable()
        yield ConnectionsTable()
        yield DeviceStats(id="device-stats")
        yield Footer()

    def on_mount(self) -> None:
        """Take a first sample and start the refresh timer."""
        self._tick()
        self.set_interval(self._config.update_interval / 1000, self._tick)

    def _tick(self) -> None:
        """Collect one snapshot and refresh every panel."""
        try:
            snapshot = self._monitor.tick()
        except Exception:
            log.exception("tick_failed")
            return
        self._update_ui(snapshot)

    def _update_ui(self, snapshot: SystemSnapshot) -> None:
        """Update the UI with the new system snapshot."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self.query_one(HistoryCharts).update_history(snapshot.history)
        self.query_one(ProcessTable).update_processes(snapshot.processes, self.settings)
        self.query_one(ConnectionsTable).update_connections(snapshot.connections)
        self.query_one("#device-stats", DeviceStats).update_stats(snapshot)

    def _refresh_processes(self) -> None:
        """Re-render the process list after a settings change."""
        processes = self._monitor.rebuild_view()
        if processes is not None:
            self.query_one(ProcessTable).update_processes(processes, self.settings)

    def _selected_process(self) -> ProcessRecord | None:
        records = self.query_one(ProcessTable).records
        if not records:
            return None
        return records[self.settings.clamp_selection(len(records))]

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Keep the engine's selection in step with the table cursor."""
        if event.data_table.id == "process-table":
            self.settings.selected = event.cursor_row

    def on_input_changed(self, event: Input.Changed) -> None:
        """Apply the filter as it is typed."""
        self.settings.set_filter(event.value)
        self._refresh_processes()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Leave filter mode, keeping the filter."""
        event.input.display = False
        self.query_one("#process-table", DataTable).focus()

    def action_filter(self) -> None:
        """Show the filter box."""
        filter_input = self.query_one("#filter-input", Input)
        filter_input.display = True
        filter_input.focus()

    def action_escape(self) -> None:
        """Cancel a pending kill, otherwise clear the filter."""
        if self._pending_kill is not None:
            self.action_cancel_kill()
            return
        filter_input = self.query_one("#filter-input", Input)
        filter_input.value = ""
        filter_input.display = False
        self.settings.clear_filter()
        self._refresh_processes()
        self.query_one("#process-table", DataTable).focus()

    def action_toggle_tree(self) -> None:
        """Toggle tree view; has no visible effect while a filter is set."""
        self.settings.toggle_tree_view()
        if self.settings.tree_view and self.settings.filter_text:
            self.notify("Tree view is disabled while filtering")
        self._refresh_processes()

    def action_cycle_sort(self) -> None:
        """Cycle through sort columns."""
        column = self.settings.cycle_sort()
        self._refresh_processes()
        self.notify(f"Sort: {SORT_LABELS[column]}")

    def action_reverse_sort(self) -> None:
        """Flip ascending/descending."""
        self.settings.toggle_sort_order()
        self._refresh_processes()

    def action_toggle_connections(self) -> None:
        """Swap the process list for the connections list."""
        connections = self.query_one(ConnectionsTable)
        processes = self.query_one(ProcessTable)
        connections.display = not connections.display
        processes.display = not connections.display

    def action_select_next(self) -> None:
        """Move the selection down one row."""
        self.settings.move_selection(1, len(self.query_one(ProcessTable).records))
        self._refresh_processes()

    def action_select_previous(self) -> None:
        """Move the selection up one row."""
        self.settings.move_selection(-1, len(self.query_one(ProcessTable).records))
        self._refresh_processes()

    def action_select_first(self) -> None:
        """Jump to the first process."""
        self.settings.select_first()
        self._refresh_processes()

    def action_select_last(self) -> None:
        """Jump to the last process."""
        self.settings.select_last(len(self.query_one(ProcessTable).records))
        self._refresh_processes()

    def action_terminate(self, force: bool) -> None:
        """Ask for confirmation before signalling the selected process."""
        proc = self._selected_process()
        if proc is None:
            return
        signal = KillSignal.KILL if force else KillSignal.TERM
        self._pending_kill = (proc, signal)
        verb = "Kill" if force else "Terminate"
        self.notify(f"{verb} {proc.name} ({proc.pid})? y/n", timeout=10)

    def action_confirm_kill(self) -> None:
        """Send the pending signal."""
        if self._pending_kill is None:
            return
        proc, signal = self._pending_kill
        self._pending_kill = None
        if self._monitor.request_termination(proc.pid, signal):
            self.notify(f"Sent {signal.value} termination to {proc.name} ({proc.pid})")
        else:
            self.notify(f"Failed to signal {proc.name} ({proc.pid})", severity="error")

    def action_cancel_kill(self) -> None:
        """Drop the pending signal."""
        if self._pending_kill is not None:
            self._pending_kill = None
            self.notify("Cancelled")

    def action_help(self) -> None:
        """Show key bindings."""
        self.notify(HELP_TEXT, title="Keys", timeout=8)
