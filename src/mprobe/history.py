"""Fixed-size rolling history for the dashboard charts.

Each series holds 120 samples, pre-filled with zeros so charts always have
a full width to draw.
"""

from collections import deque
from collections.abc import Iterator

from mprobe.models import HistoryView

HISTORY_SIZE = 120


class HistoryBuffer:
    """Ring buffer of float samples, oldest first.

    Starts full of ``fill`` values, so its length is always the capacity.
    """

    def __init__(self, capacity: int = HISTORY_SIZE, fill: float = 0.0) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._samples: deque[float] = deque([fill] * capacity, maxlen=capacity)

    def __len__(self) -> int:
        """Return number of samples in buffer."""
        return len(self._samples)

    def __iter__(self) -> Iterator[float]:
        return iter(tuple(self._samples))

    @property
    def capacity(self) -> int:
        """Return maximum number of samples the buffer can hold."""
        return self._samples.maxlen or 0

    @property
    def values(self) -> tuple[float, ...]:
        """Samples from oldest to newest (a copy)."""
        return tuple(self._samples)

    @property
    def latest(self) -> float:
        """Most recently pushed sample."""
        return self._samples[-1]

    def push(self, value: float) -> None:
        """Append a sample, evicting the oldest."""
        self._samples.append(value)


class MetricHistory:
    """The four chart series: CPU%, memory%, network up and down."""

    def __init__(self, capacity: int = HISTORY_SIZE) -> None:
        self.cpu = HistoryBuffer(capacity)
        self.memory = HistoryBuffer(capacity)
        self.net_up = HistoryBuffer(capacity)
        self.net_down = HistoryBuffer(capacity)

    def push(self, cpu: float, memory: float, net_up: float, net_down: float) -> None:
        """Record one tick's worth of samples."""
        self.cpu.push(cpu)
        self.memory.push(memory)
        self.net_up.push(net_up)
        self.net_down.push(net_down)

    def view(self) -> HistoryView:
        """Immutable copy of all four series."""
        return HistoryView(
            cpu=self.cpu.values,
            memory=self.memory.values,
            net_up=self.net_up.values,
            net_down=self.net_down.values,
        )
