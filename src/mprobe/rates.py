"""Throughput rates derived from cumulative network counters."""

from collections.abc import Mapping

from mprobe.models import InterfaceRate, NetworkRates

# interface name -> (bytes received, bytes transmitted), cumulative
Counters = Mapping[str, tuple[int, int]]


class RateCalculator:
    """
    Turns per-interface cumulative byte counters into bytes/second.

    Keeps the previous tick's counters and timestamp. A counter that went
    backwards (interface reset) contributes 0, and an interface seen for the
    first time is treated as unchanged so it does not produce a spike.
    """

    def __init__(self) -> None:
        self._previous: dict[str, tuple[int, int]] = {}
        self._previous_time: float | None = None

    @property
    def previous(self) -> dict[str, tuple[int, int]]:
        """Counters recorded on the last update (copy)."""
        return dict(self._previous)

    def update(self, counters: Counters, now: float) -> NetworkRates:
        """
        Compute rates for this tick and remember the counters for the next one.

        Args:
            counters: Cumulative (received, transmitted) bytes per interface.
            now: Monotonic timestamp of this sample, in seconds.
        """
        elapsed = 0.0 if self._previous_time is None else now - self._previous_time

        interfaces: list[InterfaceRate] = []
        down_total = 0.0
        up_total = 0.0
        received_total = 0
        transmitted_total = 0

        for name, (received, transmitted) in counters.items():
            prev_rx, prev_tx = self._previous.get(name, (received, transmitted))
            down = _rate(received, prev_rx, elapsed)
            up = _rate(transmitted, prev_tx, elapsed)

            down_total += down
            up_total += up
            received_total += received
            transmitted_total += transmitted

            # Interfaces that never moved a byte are noise (down bridges etc.)
            if received > 0 or transmitted > 0:
                interfaces.append(
                    InterfaceRate(
                        name=name,
                        received=received,
                        transmitted=transmitted,
                        down=down,
                        up=up,
                    )
                )

        self._previous = {name: (rx, tx) for name, (rx, tx) in counters.items()}
        self._previous_time = now

        return NetworkRates(
            interfaces=tuple(interfaces),
            down=down_total,
            up=up_total,
            total_received=received_total,
            total_transmitted=transmitted_total,
        )

    def reset(self) -> None:
        """Forget all previous counters."""
        self._previous.clear()
        self._previous_time = None


def _rate(current: int, previous: int, elapsed: float) -> float:
    """Saturating delta over elapsed seconds; 0 when no time has passed."""
    if elapsed <= 0:
        return 0.0
    return max(current - previous, 0) / elapsed
