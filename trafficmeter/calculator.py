"""
Throughput calculator.

Turns two successive cumulative byte-counter readings into per-second
speeds and session peaks, and folds several interfaces into one
aggregate sample.
"""

from typing import Callable, Iterable

from trafficmeter.clock import MAX_UINT64, elapsed_seconds, tick_count, wrapping_delta
from trafficmeter.schemas import AGGREGATE_DESCRIPTION, AGGREGATE_NAME, InterfaceStats

# Intervals shorter than this produce meaningless rates.
MIN_INTERVAL_SECONDS = 0.1


def counter_delta(previous: int, current: int) -> int:
    """
    Bytes transferred between two 64-bit counter readings.

    A decrease is always read as a 64-bit overflow, never as a reset.
    """
    return wrapping_delta(previous, current, MAX_UINT64)


def calculate_speed(byte_delta: int, interval_seconds: float) -> float:
    if interval_seconds <= 0.0:
        return 0.0
    return byte_delta / interval_seconds


class NetworkCalculator:
    """
    Stateless apart from its tick source; all state lives in the
    InterfaceStats objects passed in.
    """

    def __init__(self, clock: Callable[[], int] = tick_count):
        self._clock = clock

    def update(self, stats: InterfaceStats, bytes_in: int, bytes_out: int) -> bool:
        """
        Apply a new counter reading to `stats`.

        Returns False (and leaves `stats` untouched) when less than
        MIN_INTERVAL_SECONDS elapsed since the last accepted update.
        """
        now = self._clock()

        if stats.last_update_ms is None:
            stats.bytes_received = bytes_in
            stats.bytes_sent = bytes_out
            stats.prev_bytes_received = bytes_in
            stats.prev_bytes_sent = bytes_out
            stats.download_speed = 0.0
            stats.upload_speed = 0.0
            stats.last_update_ms = now
            stats.is_active = True
            return True

        interval = elapsed_seconds(stats.last_update_ms, now)
        if interval < MIN_INTERVAL_SECONDS:
            return False

        stats.prev_bytes_received = stats.bytes_received
        stats.prev_bytes_sent = stats.bytes_sent
        stats.bytes_received = bytes_in
        stats.bytes_sent = bytes_out

        delta_in = counter_delta(stats.prev_bytes_received, bytes_in)
        delta_out = counter_delta(stats.prev_bytes_sent, bytes_out)

        stats.download_speed = calculate_speed(delta_in, interval)
        stats.upload_speed = calculate_speed(delta_out, interval)
        stats.peak_download_speed = max(stats.peak_download_speed, stats.download_speed)
        stats.peak_upload_speed = max(stats.peak_upload_speed, stats.upload_speed)

        stats.last_update_ms = now
        stats.is_active = True
        return True

    def aggregate(self, stats_list: Iterable[InterfaceStats]) -> InterfaceStats:
        """
        Fold interfaces into one "All Interfaces" sample.

        Counters and current speeds are summed over active entries only;
        peaks are the maximum over all entries. An empty input gives a
        zeroed, inactive sample.
        """
        aggregate = InterfaceStats(name=AGGREGATE_NAME, description=AGGREGATE_DESCRIPTION)

        seen_any = False
        for stats in stats_list:
            seen_any = True
            aggregate.peak_download_speed = max(aggregate.peak_download_speed, stats.peak_download_speed)
            aggregate.peak_upload_speed = max(aggregate.peak_upload_speed, stats.peak_upload_speed)
            if not stats.is_active:
                continue
            aggregate.bytes_received += stats.bytes_received
            aggregate.bytes_sent += stats.bytes_sent
            aggregate.prev_bytes_received += stats.prev_bytes_received
            aggregate.prev_bytes_sent += stats.prev_bytes_sent
            aggregate.download_speed += stats.download_speed
            aggregate.upload_speed += stats.upload_speed
            aggregate.is_active = True

        if seen_any:
            aggregate.last_update_ms = self._clock()
        return aggregate

    def reset(self, stats: InterfaceStats) -> None:
        """Start a fresh measurement window: zero speeds and peaks, keep counters."""
        stats.prev_bytes_received = stats.bytes_received
        stats.prev_bytes_sent = stats.bytes_sent
        stats.download_speed = 0.0
        stats.upload_speed = 0.0
        stats.peak_download_speed = 0.0
        stats.peak_upload_speed = 0.0
        stats.last_update_ms = self._clock()
