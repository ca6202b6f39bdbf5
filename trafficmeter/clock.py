"""
Monotonic millisecond tick source.

The tick is a 32-bit millisecond counter, so it wraps roughly every
49.7 days. Elapsed-time math applies the same wraparound law used for the
64-bit byte counters.
"""

import time

MAX_UINT32 = 0xFFFFFFFF
MAX_UINT64 = 0xFFFFFFFFFFFFFFFF


def tick_count() -> int:
    """Current monotonic time in milliseconds, truncated to 32 bits."""
    return int(time.monotonic() * 1000) & MAX_UINT32


def wrapping_delta(start: int, end: int, max_value: int) -> int:
    """
    Difference between two readings of an unsigned counter that wraps at
    `max_value`.

    end >= start  -> end - start
    end <  start  -> (max_value - start) + end + 1
    """
    if end >= start:
        return end - start
    return (max_value - start) + end + 1


def elapsed_seconds(start: int, end: int) -> float:
    """Seconds between two tick_count() readings, handling the 32-bit wrap."""
    return wrapping_delta(start, end, MAX_UINT32) / 1000.0
