"""Human-readable byte and rate formatting."""

from typing import List, Tuple

SIZE_UNITS: List[Tuple[str, int]] = [
    ("B", 1),
    ("KB", 1024),
    ("MB", 1024**2),
    ("GB", 1024**3),
    ("TB", 1024**4),
]


def format_bytes(num_bytes: float) -> str:
    """Format a byte count, e.g. 1536 -> "1.50 KB"."""
    for name, divisor in reversed(SIZE_UNITS):
        if num_bytes >= divisor and divisor > 1:
            return f"{num_bytes / divisor:.2f} {name}"
    return f"{num_bytes:.0f} B"


def format_speed(bytes_per_second: float) -> str:
    """Format a rate, e.g. 2097152 -> "2.00 MB/s"."""
    return format_bytes(bytes_per_second) + "/s"
