"""
Pydantic models ("schemas") exchanged with callers of the engine.

We keep these separate from the ORM models so callers never see
SQLAlchemy internals, and so every read accessor can hand out an
independent copy of a cached sample.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

AGGREGATE_NAME = "All Interfaces"
AGGREGATE_DESCRIPTION = "Aggregated Statistics"


class InterfaceStats(BaseModel):
    """
    Live statistics for one interface (or the synthetic aggregate).

    - bytes_received / bytes_sent:           cumulative counters from the OS
    - prev_bytes_received / prev_bytes_sent: counters as of the previous accepted update
    - download_speed / upload_speed:         bytes per second over the last interval
    - peak_download_speed / peak_upload_speed: session maxima of the speeds
    - last_update_ms:                        32-bit tick of the last accepted update,
                                             None until the first observation
    """

    name: str
    description: str = ""

    bytes_received: int = 0
    bytes_sent: int = 0
    prev_bytes_received: int = 0
    prev_bytes_sent: int = 0

    download_speed: float = 0.0
    upload_speed: float = 0.0
    peak_download_speed: float = 0.0
    peak_upload_speed: float = 0.0

    is_active: bool = False
    last_update_ms: Optional[int] = None

    @property
    def is_aggregate(self) -> bool:
        return self.name == AGGREGATE_NAME

    def copy_out(self) -> "InterfaceStats":
        """Independent copy, safe to hand out of a locked section."""
        return self.model_copy()


class HistorySample(BaseModel):
    """
    One persisted per-interval delta.

    `timestamp` is UTC epoch seconds; `interface` is an interface name or
    the aggregate label.
    """

    timestamp: int
    interface: str
    bytes_down: int
    bytes_up: int

    model_config = ConfigDict(from_attributes=True)


class Totals(BaseModel):
    """Summed download/upload bytes over a time window."""

    bytes_down: int = 0
    bytes_up: int = 0
