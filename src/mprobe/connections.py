"""Connection probes and parsers for ``ss`` (Linux) and ``netstat`` (macOS)."""

import re
import subprocess
import sys
from typing import Protocol

import structlog

from mprobe.classify import connection_bucket
from mprobe.models import ConnectionRecord, ConnectionTable

log = structlog.get_logger()

_SS_NAME_RE = re.compile(r'\(\("([^"]*)"')
_SS_PID_RE = re.compile(r"pid=(\d+)")


def parse_ss_owner(annotation: str) -> tuple[int | None, str | None]:
    """Extract (pid, name) from ``users:(("sshd",pid=1234,fd=3))``."""
    name_match = _SS_NAME_RE.search(annotation)
    pid_match = _SS_PID_RE.search(annotation)
    name = name_match.group(1) if name_match else None
    pid = int(pid_match.group(1)) if pid_match else None
    return pid, name


def normalize_bsd_address(address: str) -> str:
    """
    Convert netstat's ``host.port`` into ``host:port``.

    The port is whatever follows the last dot, so ``127.0.0.1.631`` becomes
    ``127.0.0.1:631``; ``*.*`` becomes ``*:*``.
    """
    if address == "*.*":
        return "*:*"
    host, dot, port = address.rpartition(".")
    if not dot:
        return address
    return f"{host}:{port}"


def _partition(rows: list[tuple[str, ConnectionRecord]]) -> ConnectionTable:
    return ConnectionTable(
        listening=tuple(conn for bucket, conn in rows if bucket == "listening"),
        active=tuple(conn for bucket, conn in rows if bucket == "active"),
    )


def parse_ss_output(output: str) -> ConnectionTable:
    """
    Parse ``ss -tunapH`` output.

    Columns: netid, state, recv-q, send-q, local, peer, process.
    """
    rows: list[tuple[str, ConnectionRecord]] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5:
            continue

        state = parts[1]
        remote = parts[5] if len(parts) > 5 else "*:*"
        bucket = connection_bucket(state, remote)
        if bucket is None:
            continue

        pid, name = parse_ss_owner(" ".join(parts[6:])) if len(parts) > 6 else (None, None)
        rows.append(
            (
                bucket,
                ConnectionRecord(
                    protocol=parts[0].upper(),
                    local_address=parts[4],
                    remote_address=remote,
                    state=state,
                    pid=pid,
                    process_name=name,
                ),
            )
        )
    return _partition(rows)


def parse_netstat_output(output: str, protocol: str) -> ConnectionTable:
    """
    Parse ``netstat -anp tcp|udp`` output from macOS.

    Columns: proto, recv-q, send-q, local, foreign, (state). netstat gives
    no owning process, so pid and name are always absent.
    """
    rows: list[tuple[str, ConnectionRecord]] = []
    for line in output.splitlines()[2:]:
        parts = line.split()
        if len(parts) < 5:
            continue

        state = parts[5] if len(parts) > 5 else ""
        remote = normalize_bsd_address(parts[4])
        bucket = connection_bucket(state, remote)
        if bucket is None:
            continue

        rows.append(
            (
                bucket,
                ConnectionRecord(
                    protocol=protocol,
                    local_address=normalize_bsd_address(parts[3]),
                    remote_address=remote,
                    state=state,
                ),
            )
        )
    return _partition(rows)


def merge_tables(*tables: ConnectionTable) -> ConnectionTable:
    """Concatenate several tables, keeping their order."""
    return ConnectionTable(
        listening=tuple(conn for table in tables for conn in table.listening),
        active=tuple(conn for table in tables for conn in table.active),
    )


def run_probe_command(command: tuple[str, ...]) -> str | None:
    """Run a probe tool and return its stdout, or None if it could not run."""
    try:
        completed = subprocess.run(command, capture_output=True, check=False)
        return completed.stdout.decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("connection_probe_failed", command=" ".join(command), error=str(e))
        return None


class ConnectionProbe(Protocol):
    """Platform strategy that lists sockets."""

    def read(self) -> ConnectionTable: ...


class SsConnectionProbe:
    """Runs ``ss -tunapH`` (Linux)."""

    command = ("ss", "-tunapH")

    def read(self) -> ConnectionTable:
        output = run_probe_command(self.command)
        if output is None:
            return ConnectionTable()
        return parse_ss_output(output)


class NetstatConnectionProbe:
    """Runs ``netstat -anp`` once per protocol (macOS)."""

    commands = {
        "TCP": ("netstat", "-anp", "tcp"),
        "UDP": ("netstat", "-anp", "udp"),
    }

    def read(self) -> ConnectionTable:
        tables = []
        for protocol, command in self.commands.items():
            output = run_probe_command(command)
            if output is not None:
                tables.append(parse_netstat_output(output, protocol))
        return merge_tables(*tables)


class NullConnectionProbe:
    """Used on platforms without a supported tool."""

    def read(self) -> ConnectionTable:
        return ConnectionTable()


def select_connection_probe(platform: str | None = None) -> ConnectionProbe:
    """Pick the connection probe for ``platform`` (defaults to ``sys.platform``)."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return SsConnectionProbe()
    if platform == "darwin":
        return NetstatConnectionProbe()
    return NullConnectionProbe()
