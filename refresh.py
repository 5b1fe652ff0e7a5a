"""Refresh pipeline: fetch, reconcile, commit, then regenerate the summary.

Each step returns an (ok, payload) pair and the pipeline stops at the first
failure. Only one refresh may run per process; a concurrent caller gets a
`conflict` result straight away instead of waiting.
"""
import logging
import random
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

import service
import store
import summary
from reconcile import reconcile

logger = logging.getLogger(__name__)

OK = "ok"
CONFLICT = "conflict"
UNAVAILABLE = "unavailable"

# which side failed for an UNAVAILABLE result
EXTERNAL = "external"
STORAGE = "storage"


@dataclass
class RefreshResult:
    status: str
    details: Optional[str] = None
    error: Optional[str] = None
    processed: int = 0
    skipped: int = 0
    last_refreshed_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status == OK


class RefreshGuard:
    """Single-flight latch: try_acquire never blocks."""

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self):
        self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Refresher:
    def __init__(
        self,
        session_factory: sessionmaker,
        summary_path: str,
        fetch_countries: Callable = service.fetch_countries,
        fetch_rates: Callable = service.fetch_exchange_rates,
        rng: random.Random = None,
        clock: Callable[[], datetime] = _utcnow,
        regenerate: Callable = summary.regenerate,
    ):
        self.session_factory = session_factory
        self.summary_path = summary_path
        self.fetch_countries = fetch_countries
        self.fetch_rates = fetch_rates
        self.rng = rng or random.Random()
        self.clock = clock
        self.regenerate = regenerate
        self.guard = RefreshGuard()

    def refresh(self) -> RefreshResult:
        if not self.guard.try_acquire():
            logger.info("refresh rejected: another refresh is in progress")
            return RefreshResult(CONFLICT, details="Refresh already in progress")
        try:
            return self._run()
        finally:
            self.guard.release()

    def _run(self) -> RefreshResult:
        ok, countries = self.fetch_countries()
        if not ok:
            return RefreshResult(UNAVAILABLE, details=countries, error=EXTERNAL)

        ok, rates = self.fetch_rates()
        if not ok:
            return RefreshResult(UNAVAILABLE, details=rates, error=EXTERNAL)

        now = self.clock()
        records, skipped = [], 0
        for raw in countries:
            ok, record = reconcile(raw, rates, now, self.rng)
            if not ok:
                skipped += 1
                logger.warning("skipping country: %s", record)
                continue
            records.append(record)

        ok, cause = store.apply_snapshot(self.session_factory, records, now)
        if not ok:
            return RefreshResult(UNAVAILABLE, details=cause, error=STORAGE)

        self._regenerate_summary()
        logger.info("refresh done: %d stored, %d skipped", len(records), skipped)
        return RefreshResult(OK, processed=len(records), skipped=skipped, last_refreshed_at=now)

    def _regenerate_summary(self):
        # the dataset is already committed, so a failure here stays a log line
        try:
            ok, cause = self.regenerate(self.session_factory, self.summary_path)
        except Exception:
            logger.exception("summary image regeneration crashed")
            return
        if not ok:
            logger.error("summary image regeneration failed: %s", cause)
