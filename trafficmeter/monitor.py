"""
Per-interface statistics cache.

One poll cycle:
1. read raw counters from the counter source (outside the lock, with a timeout)
2. under the lock: forget which entries were seen, filter the reported
   interfaces, create or update their entries through the calculator
3. drop every entry that was not reported this cycle

If step 1 fails the cache is left exactly as it was.

Readers take the same lock but only to copy entries out, so no caller
ever holds a reference into the cache.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, Iterable, List, Optional

from trafficmeter.calculator import NetworkCalculator
from trafficmeter.counters import CounterError, RawInterface, is_eligible
from trafficmeter.schemas import InterfaceStats

logger = logging.getLogger(__name__)


class NetworkMonitor:
    """
    Usage:
        monitor = NetworkMonitor(PsutilCounterSource())
        monitor.start()
        ...
        monitor.update()            # once per tick
        monitor.get_all_stats()     # copies of active interfaces
        monitor.get_interface_stats("eth0")  # None when absent
    """

    def __init__(
        self,
        source,
        calculator: Optional[NetworkCalculator] = None,
        excluded: Iterable[str] = (),
        read_timeout: Optional[float] = 5.0,
    ):
        self._source = source
        self._calculator = calculator or NetworkCalculator()
        self._excluded = frozenset(excluded)
        self._read_timeout = read_timeout

        self._lock = threading.Lock()
        self._stats: Dict[str, InterfaceStats] = {}

        self._executor: Optional[ThreadPoolExecutor] = None
        self._running = False

    # ---- lifecycle ----

    def start(self) -> bool:
        """Begin monitoring; the first cycle bootstraps every interface."""
        if self._running:
            return True
        self._running = True
        if not self.update():
            self._running = False
            return False
        return True

    def stop(self) -> None:
        self._running = False
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    @property
    def running(self) -> bool:
        return self._running

    # ---- poll cycle ----

    def update(self) -> bool:
        """Run one poll cycle. Returns False when the cycle failed."""
        if not self._running:
            return False

        try:
            reported = self._read_counters()
        except (CounterError, OSError) as exc:
            logger.warning("Counter read failed, keeping previous stats: %s", exc)
            return False

        with self._lock:
            seen = set()
            for raw in reported:
                if not is_eligible(raw, self._excluded):
                    continue
                stats = self._stats.get(raw.name)
                if stats is None:
                    stats = InterfaceStats(name=raw.name, description=raw.description)
                    self._stats[raw.name] = stats
                    logger.info("Interface appeared: %s", raw.name)
                seen.add(raw.name)
                self._calculator.update(stats, raw.bytes_in, raw.bytes_out)

            for name in [n for n in self._stats if n not in seen]:
                del self._stats[name]
                logger.info("Interface gone: %s", name)

        return True

    def _read_counters(self) -> List[RawInterface]:
        if self._read_timeout is None:
            return list(self._source.read())

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="counter-read")
        future = self._executor.submit(self._source.read)
        try:
            return list(future.result(timeout=self._read_timeout))
        except FutureTimeout as exc:
            future.cancel()
            raise CounterError(f"counter read timed out after {self._read_timeout}s") from exc

    # ---- copy-out readers ----

    def get_all_stats(self) -> List[InterfaceStats]:
        with self._lock:
            return [s.copy_out() for s in self._stats.values() if s.is_active]

    def get_aggregated_stats(self) -> InterfaceStats:
        return self._calculator.aggregate(self.get_all_stats())

    def get_interface_stats(self, name: str) -> Optional[InterfaceStats]:
        """Copy of the named interface, or None when it is not present."""
        with self._lock:
            stats = self._stats.get(name)
            return stats.copy_out() if stats is not None else None

    def reset_peaks(self) -> None:
        """Clear speeds and peaks of every cached interface."""
        with self._lock:
            for stats in self._stats.values():
                self._calculator.reset(stats)
