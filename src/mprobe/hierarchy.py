"""Process list building: filtering, sorting and tree reconstruction."""

import math
from collections.abc import Callable, Sequence
from dataclasses import replace

from mprobe.models import ProcessRecord, SortColumn


def _cpu_key(record: ProcessRecord) -> float:
    # NaN never compares, so rank it below every real reading
    cpu = record.cpu_usage
    return -math.inf if math.isnan(cpu) else cpu


SORT_KEYS: dict[SortColumn, Callable[[ProcessRecord], object]] = {
    SortColumn.PID: lambda r: r.pid,
    SortColumn.NAME: lambda r: r.name.lower(),
    SortColumn.CPU: _cpu_key,
    SortColumn.MEMORY: lambda r: r.memory_bytes,
}


def matches_filter(record: ProcessRecord, needle: str) -> bool:
    """Case-insensitive substring match on name or command line.

    ``needle`` must already be lower-cased.
    """
    return needle in record.name.lower() or needle in record.command_line.lower()


def filter_records(records: Sequence[ProcessRecord], filter_text: str) -> list[ProcessRecord]:
    """Keep records whose name or command line contains ``filter_text``."""
    if not filter_text:
        return list(records)
    needle = filter_text.lower()
    return [r for r in records if matches_filter(r, needle)]


def sort_records(
    records: Sequence[ProcessRecord],
    column: SortColumn,
    ascending: bool,
) -> list[ProcessRecord]:
    """Stable sort by ``column``; equal keys keep their input order either way."""
    return sorted(records, key=SORT_KEYS[column], reverse=not ascending)


def build_tree(records: Sequence[ProcessRecord]) -> list[ProcessRecord]:
    """
    Arrange processes as a depth-annotated, depth-first pre-order list.

    A process is a root when it has no parent, when its parent is not in
    ``records`` or when it claims to be its own parent. Siblings are ordered
    by descending CPU, ties keeping input order. Each record is emitted once,
    at the depth it was first reached. Records unreachable from any root hang
    off a parent cycle; the highest-CPU member of each cycle becomes an extra
    root, and those are walked afterwards in descending-CPU order.
    """
    index_of: dict[int, int] = {}
    for i, record in enumerate(records):
        index_of.setdefault(record.pid, i)

    parents: list[int | None] = []
    children: dict[int, list[int]] = {}
    roots: list[int] = []
    for i, record in enumerate(records):
        parent = index_of.get(record.ppid) if record.ppid is not None else None
        if parent is None or parent == i:
            parent = None
            roots.append(i)
        else:
            children.setdefault(parent, []).append(i)
        parents.append(parent)

    def by_cpu(indices: list[int]) -> list[int]:
        return sorted(indices, key=lambda i: _cpu_key(records[i]), reverse=True)

    output: list[ProcessRecord] = []
    visited: set[int] = set()

    def walk(start: list[int]) -> None:
        # Explicit stack; push in reverse so the first child pops first
        stack = [(i, 0) for i in reversed(start)]
        while stack:
            i, depth = stack.pop()
            if i in visited:
                continue
            visited.add(i)
            output.append(replace(records[i], depth=depth))
            for child in reversed(by_cpu(children.get(i, []))):
                if child not in visited:
                    stack.append((child, depth + 1))

    walk(by_cpu(roots))

    if len(visited) < len(records):
        walk(by_cpu(_cycle_roots(parents, visited, by_cpu)))

    return output


def _cycle_roots(
    parents: Sequence[int | None],
    visited: set[int],
    by_cpu: Callable[[list[int]], list[int]],
) -> list[int]:
    """
    One root per parent cycle among the unvisited indices.

    Every unvisited index has a parent, so following parent links from it
    must end in a cycle. Results are memoised per index so each chain is
    followed once.
    """
    root_of: dict[int, int] = {}
    for start in range(len(parents)):
        if start in visited or start in root_of:
            continue
        path: list[int] = []
        position: dict[int, int] = {}
        i: int | None = start
        while i is not None and i not in position and i not in root_of:
            position[i] = len(path)
            path.append(i)
            i = parents[i]
        if i is None:
            continue  # unreachable: the chain would have led to a visited root
        root = root_of[i] if i in root_of else by_cpu(sorted(path[position[i]:]))[0]
        for j in path:
            root_of[j] = root
    return sorted(set(root_of.values()))


def build_process_view(
    records: Sequence[ProcessRecord],
    filter_text: str = "",
    sort_column: SortColumn = SortColumn.CPU,
    ascending: bool = False,
    tree_view: bool = False,
) -> list[ProcessRecord]:
    """
    Produce the ordered process list for display.

    A non-empty filter always yields a flat list, whatever ``tree_view`` says.
    """
    if tree_view and not filter_text:
        return build_tree(records)
    flat = sort_records(filter_records(records, filter_text), sort_column, ascending)
    return [r if r.depth == 0 else replace(r, depth=0) for r in flat]
