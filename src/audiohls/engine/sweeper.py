"""Periodic background eviction of expired jobs."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from .job_store import JobStore

LOGGER = logging.getLogger(__name__)


class ExpirySweeper:
    """Delete jobs older than ``max_age_minutes`` on a fixed interval.

    Age is measured from job creation, so a job that is still processing can
    be evicted once it passes the threshold.
    """

    def __init__(self, store: JobStore, max_age_minutes: float, interval_seconds: float = 300.0) -> None:
        self._store = store
        self._max_age_minutes = max(0.0, float(max_age_minutes))
        self._interval = max(1.0, float(interval_seconds))
        self._wake = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._last_run: Optional[datetime] = None
        self._total_removed = 0

    @property
    def max_age_minutes(self) -> float:
        return self._max_age_minutes

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def run_once(self) -> list[str]:
        """Sweep immediately and return the ids of evicted jobs."""

        removed = self._store.sweep(self._max_age_minutes)
        self._last_run = datetime.now(timezone.utc)
        self._total_removed += len(removed)
        if removed:
            LOGGER.info("[Cleanup] Swept %d expired job(s): %s", len(removed), ", ".join(removed))
        return removed

    def describe(self) -> dict[str, Any]:
        return {
            "running": self.running(),
            "max_age_minutes": self._max_age_minutes,
            "interval_seconds": self._interval,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "total_removed": self._total_removed,
        }

    def start(self) -> None:
        if self.running():
            return
        self._wake.clear()
        self._sweeper = threading.Thread(target=self._loop, name="job-expiry-sweeper", daemon=True)
        self._sweeper.start()
        LOGGER.info(
            "Expiry sweeper started (max_age=%s min, interval=%ss)",
            self._max_age_minutes,
            self._interval,
        )

    def stop(self, timeout: float = 2.0) -> None:
        sweeper, self._sweeper = self._sweeper, None
        self._wake.set()
        if sweeper is not None and sweeper.is_alive():
            sweeper.join(timeout=timeout)
            LOGGER.info("Expiry sweeper stopped")

    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _loop(self) -> None:
        # The event doubles as the stop signal; a set event ends the loop.
        while not self._wake.wait(self._interval):
            try:
                self.run_once()
            except Exception:  # pragma: no cover
                LOGGER.exception("Expiry sweep failed")


__all__ = ["ExpirySweeper"]
