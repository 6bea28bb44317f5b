# ------------------------------------------------------------------------
# File: janitor.py
# Location: signlink/core/janitor.py
# Description:
#     Retention sweep for sign requests. A request (and its events) is
#     removed only once expires_at is older than the retention window, so
#     signed records stay available as proof long after the link expires.
#     The sweep runs on a background thread; a failed tick is logged and
#     the next tick tries again.
# ------------------------------------------------------------------------

import threading
from datetime import timedelta

from signlink.core.logging_config import configure_logging
from signlink.core.timeutil import utcnow

logger = configure_logging("signlink.janitor", "signlink.log")


class RetentionJanitor:
    def __init__(self, store, retention_days: int, interval_seconds: float, clock=utcnow, rate_limiter=None):
        self.store = store
        self.retention_days = retention_days
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.rate_limiter = rate_limiter
        self._stop_event = threading.Event()
        self._thread = None

    def cutoff(self):
        return self.clock() - timedelta(days=self.retention_days)

    def sweep(self):
        """Run one retention pass. Returns (deleted_requests, deleted_events)."""
        cutoff = self.cutoff()
        deleted_requests, deleted_events = self.store.delete_expired_before(cutoff)
        if deleted_requests or deleted_events:
            logger.info(
                f"Maintenance cleanup removed {deleted_requests} requests and {deleted_events} events "
                f"(cutoff {cutoff.isoformat()})"
            )
        return deleted_requests, deleted_events

    def run_once(self) -> None:
        try:
            self.sweep()
        except Exception:
            logger.exception("Maintenance cleanup failed")

        if self.rate_limiter is not None:
            removed = self.rate_limiter.prune()
            if removed:
                logger.debug(f"Pruned {removed} idle rate-limit buckets")

    def _run(self):
        self.run_once()
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="signlink-janitor", daemon=True)
        self._thread.start()
        logger.info(
            f"Retention janitor started (retention {self.retention_days} days, "
            f"every {self.interval_seconds:.0f}s)"
        )

    def stop(self, timeout: float = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Retention janitor did not stop within the grace period")
            self._thread = None
