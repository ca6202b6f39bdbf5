"""
Persistent traffic history.

An append-only log of per-interval byte deltas kept in SQLite through
SQLAlchemy, with:

- totals for the current local day and the current local month
- the most recent N samples, optionally filtered
- retention trimming

The store opens its database on first real use. If opening or any later
statement fails, the store becomes unavailable for the rest of the
process: writes turn into no-ops and reads return None / empty lists.
Nothing raised by the storage layer reaches the caller.

Day and month windows are computed from local wall-clock time at the
moment of the call, so a day that crosses a DST change is 23 or 25
hours long.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from datetime import date, datetime, timedelta
from datetime import time as dtime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from trafficmeter.database import Base, ensure_sqlite_directory, make_engine, make_session_factory
from trafficmeter.models import UsageRecord
from trafficmeter.schemas import HistorySample, Totals

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
MAX_INT64 = 0x7FFFFFFFFFFFFFFF
MIN_INT64 = -MAX_INT64 - 1


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    UNAVAILABLE = "unavailable"


def local_day_bounds(now: float) -> Tuple[int, int]:
    """[start of local today, start of local tomorrow) as epoch seconds."""
    today = datetime.fromtimestamp(now).date()
    return _local_midnight(today), _local_midnight(today + timedelta(days=1))


def local_month_bounds(now: float) -> Tuple[int, int]:
    """[first instant of this local month, first instant of next) as epoch seconds."""
    today = datetime.fromtimestamp(now).date()
    first = today.replace(day=1)
    if first.month == 12:
        following = first.replace(year=first.year + 1, month=1)
    else:
        following = first.replace(month=first.month + 1)
    return _local_midnight(first), _local_midnight(following)


def _is_integer_overflow(exc: OperationalError) -> bool:
    return "integer overflow" in str(exc.orig).lower()


def _local_midnight(day: date) -> int:
    # Naive datetimes are interpreted in local time by timestamp().
    return int(datetime.combine(day, dtime.min).timestamp())


class HistoryStore:
    """
    Usage:
        store = HistoryStore("sqlite:///network_usage.db")
        store.append_sample("Ethernet", 1000, 500)
        store.totals_today("Ethernet")   # Totals(bytes_down=1000, bytes_up=500)
        store.close()
    """

    def __init__(self, url: str, clock: Callable[[], float] = time.time):
        self._url = url
        self._clock = clock
        self._lock = threading.RLock()
        self._state = StoreState.UNINITIALIZED
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None

    # ---- lifecycle ----

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def available(self) -> bool:
        """Open the store if needed and report whether it is usable."""
        with self._lock:
            return self._ensure_ready()

    def _ensure_ready(self) -> bool:
        if self._state is StoreState.READY:
            return True
        if self._state is StoreState.UNAVAILABLE:
            return False

        try:
            ensure_sqlite_directory(self._url)
            self._engine = make_engine(self._url)
            # Create the table and index if they don't exist yet
            Base.metadata.create_all(bind=self._engine)
            self._sessions = make_session_factory(self._engine)
        except (SQLAlchemyError, OSError, ImportError) as exc:
            # ImportError: the URL names a dialect whose DBAPI driver is missing.
            self._disable(f"cannot open history database {self._url}: {exc}")
            return False

        self._state = StoreState.READY
        logger.debug("History store ready at %s", self._url)
        return True

    def _disable(self, reason: str) -> None:
        logger.error("History disabled: %s", reason)
        self._state = StoreState.UNAVAILABLE
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessions = None

    def close(self) -> None:
        """Release the database engine. A closed store reports unavailable."""
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._sessions = None
            self._state = StoreState.UNAVAILABLE

    def _session(self) -> Session:
        return self._sessions()

    # ---- write path ----

    def append_sample(self, interface: str, bytes_down: int, bytes_up: int) -> bool:
        """
        Record the bytes moved during one interval.

        Returns True when a row was written. Zero/zero samples are never
        stored.
        """
        if bytes_down == 0 and bytes_up == 0:
            return False
        if min(bytes_down, bytes_up) < 0 or max(bytes_down, bytes_up) > MAX_INT64:
            logger.warning(
                "Ignoring out-of-range history sample for %s: down=%s up=%s",
                interface, bytes_down, bytes_up,
            )
            return False

        with self._lock:
            if not self._ensure_ready():
                return False
            record = UsageRecord(
                timestamp=int(self._clock()),
                interface=interface,
                bytes_down=bytes_down,
                bytes_up=bytes_up,
            )
            try:
                with self._session() as db:
                    db.add(record)
                    db.commit()
            except SQLAlchemyError as exc:
                self._disable(f"insert failed: {exc}")
                return False
        return True

    # ---- read path ----

    def totals_today(self, interface: Optional[str] = None) -> Optional[Totals]:
        """Bytes moved since local midnight; None when history is unavailable."""
        start, end = local_day_bounds(self._clock())
        return self._totals_between(start, end, interface)

    def totals_this_month(self, interface: Optional[str] = None) -> Optional[Totals]:
        """Bytes moved since the first of the local month; None when unavailable."""
        start, end = local_month_bounds(self._clock())
        return self._totals_between(start, end, interface)

    def _totals_between(self, start: int, end: int, interface: Optional[str]) -> Optional[Totals]:
        with self._lock:
            if not self._ensure_ready():
                return None
            try:
                with self._session() as db:
                    q = db.query(
                        func.coalesce(func.sum(UsageRecord.bytes_down), 0),
                        func.coalesce(func.sum(UsageRecord.bytes_up), 0),
                    ).filter(UsageRecord.timestamp >= start, UsageRecord.timestamp < end)
                    if interface:
                        q = q.filter(UsageRecord.interface == interface)
                    try:
                        down, up = q.one()
                    except OperationalError as exc:
                        if not _is_integer_overflow(exc):
                            raise
                        db.rollback()
                        down, up = self._sum_rows(db, start, end, interface)
            except SQLAlchemyError as exc:
                self._disable(f"totals query failed: {exc}")
                return None
        return Totals(bytes_down=int(down), bytes_up=int(up))

    @staticmethod
    def _sum_rows(db: Session, start: int, end: int, interface: Optional[str]) -> Tuple[int, int]:
        """Exact totals summed in Python, for windows whose SQL SUM exceeds int64."""
        q = db.query(UsageRecord.bytes_down, UsageRecord.bytes_up).filter(
            UsageRecord.timestamp >= start, UsageRecord.timestamp < end
        )
        if interface:
            q = q.filter(UsageRecord.interface == interface)
        down = up = 0
        for row_down, row_up in q.yield_per(1000):
            down += row_down
            up += row_up
        return down, up

    def recent_samples(
        self,
        limit: int,
        interface: Optional[str] = None,
        only_today: bool = False,
    ) -> List[HistorySample]:
        """
        Up to `limit` samples, newest first.

        `interface` restricts to one source; `only_today` restricts to
        samples logged since local midnight.
        """
        if limit <= 0:
            return []
        limit = min(limit, MAX_INT64)

        with self._lock:
            if not self._ensure_ready():
                return []
            try:
                with self._session() as db:
                    q = db.query(UsageRecord)
                    if interface:
                        q = q.filter(UsageRecord.interface == interface)
                    if only_today:
                        start, _ = local_day_bounds(self._clock())
                        q = q.filter(UsageRecord.timestamp >= start)
                    rows = (
                        q.order_by(UsageRecord.timestamp.desc(), UsageRecord.id.desc())
                        .limit(limit)
                        .all()
                    )
                    return [HistorySample.model_validate(r) for r in rows]
            except SQLAlchemyError as exc:
                self._disable(f"recent samples query failed: {exc}")
                return []

    # ---- retention ----

    def trim_to_recent_days(self, days: int) -> bool:
        """
        Apply the retention policy.

        days <= 0 deletes everything; otherwise rows older than
        now - days * 86400 seconds are deleted.
        """
        if days <= 0:
            return self.delete_all()

        # Bound parameters must fit a signed 64-bit SQLite integer.
        cutoff = max(int(self._clock()) - days * SECONDS_PER_DAY, MIN_INT64)
        with self._lock:
            if not self._ensure_ready():
                return False
            try:
                with self._session() as db:
                    deleted = (
                        db.query(UsageRecord)
                        .filter(UsageRecord.timestamp < cutoff)
                        .delete(synchronize_session=False)
                    )
                    db.commit()
            except SQLAlchemyError as exc:
                self._disable(f"trim failed: {exc}")
                return False
        logger.info("Trimmed %d history rows older than %d days", deleted, days)
        return True

    def delete_all(self) -> bool:
        with self._lock:
            if not self._ensure_ready():
                return False
            try:
                with self._session() as db:
                    db.query(UsageRecord).delete(synchronize_session=False)
                    db.commit()
            except SQLAlchemyError as exc:
                self._disable(f"delete failed: {exc}")
                return False
        logger.info("History cleared")
        return True
