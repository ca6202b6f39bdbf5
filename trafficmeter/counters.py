"""
Raw interface counter sources.

We support two modes:

1. Real counters from the operating system (using psutil).
2. Stub mode: synthetic interfaces with counters that grow on every read.

Either way the result is a list of RawInterface values owned by the
caller; nothing returned here refers back to OS structures.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

import psutil

from trafficmeter.clock import MAX_UINT64
from trafficmeter.config import Settings


class CounterError(Exception):
    """Raised when the interface counters cannot be read."""


class LinkType(str, Enum):
    ETHERNET = "ethernet"
    WIFI = "wifi"
    PPP = "ppp"
    LOOPBACK = "loopback"
    TUNNEL = "tunnel"
    OTHER = "other"


MONITORED_LINK_TYPES = frozenset({LinkType.ETHERNET, LinkType.WIFI, LinkType.PPP})


@dataclass(frozen=True)
class RawInterface:
    """One interface as reported by a counter source for a single poll."""

    name: str
    description: str
    oper_up: bool
    link_type: LinkType
    bytes_in: int
    bytes_out: int


def is_eligible(raw: RawInterface, excluded: Iterable[str] = ()) -> bool:
    """
    Decide whether an interface is tracked.

    - must be operationally up
    - must not be a loopback
    - must be wired Ethernet, Wi-Fi or PPP
    - must not be listed in `excluded`
    """
    if not raw.oper_up:
        return False
    if raw.link_type == LinkType.LOOPBACK:
        return False
    if raw.link_type not in MONITORED_LINK_TYPES:
        return False
    return raw.name not in set(excluded)


# ---------------------------------------------------------------------------
# Real implementation: psutil
# ---------------------------------------------------------------------------

_WIFI_PREFIXES = ("wl", "wlan", "wi-fi", "wifi", "wireless", "ath", "ra")
_PPP_PREFIXES = ("ppp", "wwan", "cellular")
_TUNNEL_PREFIXES = ("tun", "tap", "wg", "tailscale", "utun", "gif", "stf", "ipsec", "zt")
_OTHER_PREFIXES = ("bridge", "awdl", "llw", "anpi", "ap")


def classify_link(name: str, flags: str = "") -> LinkType:
    """
    Best-effort link type from the interface name and psutil flags.

    psutil does not expose the hardware type, so this follows the usual
    naming conventions of Linux, macOS and Windows.
    """
    lowered = name.lower()
    flag_set = {f.strip() for f in (flags or "").split(",") if f.strip()}

    if "loopback" in flag_set or lowered == "lo" or lowered.startswith(("lo0", "loopback")):
        return LinkType.LOOPBACK
    if "pointopoint" in flag_set and lowered.startswith(_TUNNEL_PREFIXES):
        return LinkType.TUNNEL
    if lowered.startswith(_PPP_PREFIXES) or "pointopoint" in flag_set:
        return LinkType.PPP
    if lowered.startswith(_TUNNEL_PREFIXES):
        return LinkType.TUNNEL
    if lowered.startswith(_WIFI_PREFIXES):
        return LinkType.WIFI
    if lowered.startswith(_OTHER_PREFIXES):
        return LinkType.OTHER
    return LinkType.ETHERNET


class PsutilCounterSource:
    """Reads per-NIC byte counters and link state through psutil."""

    def read(self) -> List[RawInterface]:
        try:
            counters = psutil.net_io_counters(pernic=True)
            if_stats = psutil.net_if_stats()
        except (OSError, RuntimeError) as exc:
            raise CounterError(f"failed to read interface counters: {exc}") from exc

        result: List[RawInterface] = []
        for name, io in counters.items():
            st = if_stats.get(name)
            flags = getattr(st, "flags", "") if st is not None else ""
            result.append(
                RawInterface(
                    name=name,
                    description=_describe(name, st),
                    oper_up=bool(st is not None and st.isup),
                    link_type=classify_link(name, flags),
                    bytes_in=int(io.bytes_recv) & MAX_UINT64,
                    bytes_out=int(io.bytes_sent) & MAX_UINT64,
                )
            )
        return result


def _describe(name: str, st) -> str:
    if st is None or not st.speed:
        return name
    return f"{name} ({st.speed} Mbps)"


# ---------------------------------------------------------------------------
# Stub implementation: fake counters for demo purposes
# ---------------------------------------------------------------------------


class StubCounterSource:
    """
    Synthetic interfaces whose counters grow by a random amount on each read.

    Interfaces can be plugged and unplugged at runtime to simulate hot-plug.
    """

    def __init__(self, names: Optional[Iterable[str]] = None, seed: Optional[int] = None):
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._state: Dict[str, Dict[str, Union[int, LinkType]]] = {}
        for name in names or ("Ethernet", "Wi-Fi"):
            self.plug(name)

    def plug(self, name: str, link_type: LinkType = LinkType.ETHERNET) -> None:
        """Add a fake interface with a random baseline."""
        if name.lower().startswith(("wi-fi", "wifi", "wl")):
            link_type = LinkType.WIFI
        with self._lock:
            if name in self._state:
                return
            self._state[name] = {
                "bytes_in": self._rng.randint(1_000_000, 10_000_000),
                "bytes_out": self._rng.randint(1_000_000, 10_000_000),
                "link_type": link_type,
            }

    def unplug(self, name: str) -> None:
        with self._lock:
            self._state.pop(name, None)

    def read(self) -> List[RawInterface]:
        with self._lock:
            result = []
            for name, st in self._state.items():
                st["bytes_in"] = (st["bytes_in"] + self._rng.randint(10_000, 100_000)) & MAX_UINT64
                st["bytes_out"] = (st["bytes_out"] + self._rng.randint(1_000, 50_000)) & MAX_UINT64
                result.append(
                    RawInterface(
                        name=name,
                        description=f"stub interface {name}",
                        oper_up=True,
                        link_type=st["link_type"],
                        bytes_in=st["bytes_in"],
                        bytes_out=st["bytes_out"],
                    )
                )
            return result


# ---------------------------------------------------------------------------
# Public API function used by the engine
# ---------------------------------------------------------------------------


def get_counter_source(settings: Settings):
    """
    Choose the counter source.

    - If settings.use_counter_stub is true, use the stub.
    - Else read the real OS counters through psutil.
    """
    if settings.use_counter_stub:
        return StubCounterSource()
    return PsutilCounterSource()
