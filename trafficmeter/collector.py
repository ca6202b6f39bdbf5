"""
Metrics engine and collector loop.

This module:
- drives the interface monitor once per tick
- picks the reported view (selected interface, else all interfaces)
- writes that view's per-tick byte delta into the history store

Run it as:

    python -m trafficmeter.collector

or, with synthetic counters:

    TRAFFICMETER_USE_COUNTER_STUB=1 python -m trafficmeter.collector
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from trafficmeter.calculator import NetworkCalculator
from trafficmeter.clock import tick_count
from trafficmeter.config import Settings, get_settings
from trafficmeter.counters import get_counter_source
from trafficmeter.history import HistoryStore
from trafficmeter.logger import setup_logging
from trafficmeter.monitor import NetworkMonitor
from trafficmeter.schemas import HistorySample, InterfaceStats, Totals
from trafficmeter.utils import format_bytes, format_speed

logger = logging.getLogger(__name__)


class MetricsEngine:
    """
    Owns the interface monitor and the history store.

    Lifecycle: start() runs the startup retention trim and the first
    (bootstrap) cycle; update() is called once per tick; close() stops
    the monitor and releases the history database.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        source=None,
        store: Optional[HistoryStore] = None,
        clock: Callable[[], int] = tick_count,
    ):
        self.settings = settings or get_settings()
        self.monitor = NetworkMonitor(
            source if source is not None else get_counter_source(self.settings),
            calculator=NetworkCalculator(clock),
            excluded=self.settings.exclude_interfaces,
            read_timeout=self.settings.counter_timeout_seconds,
        )
        self.store = store if store is not None else HistoryStore(self.settings.resolved_database_url())

        # Baseline for history deltas: the logged source and its counters per interface.
        self._logged_source: Optional[str] = None
        self._logged_counters: Dict[str, Tuple[int, int]] = {}

    # ---- lifecycle ----

    def start(self) -> bool:
        if self.settings.history_auto_trim_days > 0:
            self.store.trim_to_recent_days(self.settings.history_auto_trim_days)

        if not self.monitor.start():
            logger.warning("Initial interface poll failed")
            return False
        self._log_history(self.current_stats())
        return True

    def close(self) -> None:
        self.monitor.stop()
        self.store.close()

    # ---- one tick ----

    def update(self) -> bool:
        """Run one poll cycle; history is written only when the cycle succeeds."""
        if not self.monitor.update():
            return False

        view = self.current_stats()
        if self.settings.enable_history:
            self._log_history(view)

        logger.debug(
            "%s: down %s up %s",
            view.name, format_speed(view.download_speed), format_speed(view.upload_speed),
        )
        return True

    def current_stats(self) -> InterfaceStats:
        """The selected interface when present, otherwise the aggregate view."""
        selected = self.settings.selected_interface
        if selected:
            stats = self.monitor.get_interface_stats(selected)
            if stats is not None:
                return stats
        return self.monitor.get_aggregated_stats()

    def _log_history(self, view: InterfaceStats) -> None:
        """
        Append exactly one record for the view's source.

        Only interfaces present in both the previous and this tick count;
        a counter that went down counts as a reset and contributes 0. A
        change of source only re-baselines.
        """
        if view.is_aggregate:
            counters = {s.name: (s.bytes_received, s.bytes_sent) for s in self.monitor.get_all_stats()}
        else:
            counters = {view.name: (view.bytes_received, view.bytes_sent)}

        previous_source = self._logged_source
        previous = self._logged_counters
        self._logged_source = view.name
        self._logged_counters = counters

        if previous_source != view.name:
            return

        delta_down = 0
        delta_up = 0
        for name, (down, up) in counters.items():
            if name not in previous:
                continue
            prev_down, prev_up = previous[name]
            if down >= prev_down:
                delta_down += down - prev_down
            if up >= prev_up:
                delta_up += up - prev_up

        if delta_down or delta_up:
            self.store.append_sample(view.name, delta_down, delta_up)

    # ---- exposed to the report layer ----

    def get_all_stats(self) -> List[InterfaceStats]:
        return self.monitor.get_all_stats()

    def get_aggregated_stats(self) -> InterfaceStats:
        return self.monitor.get_aggregated_stats()

    def get_interface_stats(self, name: str) -> Optional[InterfaceStats]:
        return self.monitor.get_interface_stats(name)

    def append_sample(self, interface: str, bytes_down: int, bytes_up: int) -> bool:
        return self.store.append_sample(interface, bytes_down, bytes_up)

    def totals_today(self, interface: Optional[str] = None) -> Optional[Totals]:
        return self.store.totals_today(interface)

    def totals_this_month(self, interface: Optional[str] = None) -> Optional[Totals]:
        return self.store.totals_this_month(interface)

    def recent_samples(
        self, limit: int, interface: Optional[str] = None, only_today: bool = False
    ) -> List[HistorySample]:
        return self.store.recent_samples(limit, interface, only_today)

    def trim_to_recent_days(self, days: int) -> bool:
        return self.store.trim_to_recent_days(days)

    def delete_all(self) -> bool:
        return self.store.delete_all()


# ---------------------------------------------------------------------------
# Command line entry point
# ---------------------------------------------------------------------------


def _describe_totals(label: str, totals: Optional[Totals]) -> str:
    if totals is None:
        return f"{label}: history unavailable"
    return f"{label}: down {format_bytes(totals.bytes_down)}, up {format_bytes(totals.bytes_up)}"


def run_loop(engine: MetricsEngine, interval_s: float) -> None:
    """Blocking tick loop with deadline-based sleep. Ctrl+C to exit."""
    next_tick = time.monotonic()
    while True:
        next_tick += interval_s
        if engine.update():
            view = engine.current_stats()
            logger.info(
                "%s: down %s up %s (peak %s / %s)",
                view.name,
                format_speed(view.download_speed),
                format_speed(view.upload_speed),
                format_speed(view.peak_download_speed),
                format_speed(view.peak_upload_speed),
            )
        time.sleep(max(0.0, next_tick - time.monotonic()))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Network traffic meter")
    parser.add_argument("--interval", type=float, default=None,
                        help="Update interval in seconds (default: from settings)")
    parser.add_argument("--interface", default=None,
                        help="Report and log a single interface instead of all")
    parser.add_argument("--once", action="store_true",
                        help="Run a single cycle, print today's and this month's totals, exit")
    parser.add_argument("--trim", type=int, metavar="DAYS", default=None,
                        help="Delete history older than DAYS days (0 = everything) and exit")
    parser.add_argument("--purge", action="store_true",
                        help="Delete all history and exit")
    args = parser.parse_args(argv)

    overrides = {}
    if args.interval is not None:
        overrides["poll_interval_seconds"] = max(0.1, args.interval)
    if args.interface is not None:
        overrides["selected_interface"] = args.interface
    settings = get_settings(**overrides)
    setup_logging(settings.log_level)

    if args.purge or args.trim is not None:
        store = HistoryStore(settings.resolved_database_url())
        try:
            ok = store.delete_all() if args.purge else store.trim_to_recent_days(args.trim)
        finally:
            store.close()
        return 0 if ok else 1

    engine = MetricsEngine(settings)
    logger.info("Starting traffic meter, interval %.1fs", settings.poll_interval_seconds)
    try:
        if not engine.start():
            return 1
        if args.once:
            time.sleep(settings.poll_interval_seconds)
            engine.update()
            selected = settings.selected_interface or None
            print(_describe_totals("Today", engine.totals_today(selected)))
            print(_describe_totals("This month", engine.totals_this_month(selected)))
            return 0
        run_loop(engine, settings.poll_interval_seconds)
    except KeyboardInterrupt:
        pass
    finally:
        engine.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
