"""
Sync Worker Service.

Background daemon thread that keeps the local cache fresh.  Each cycle it
asks the orchestrator whether any entity is stale, runs a sync when one is,
and then retries records parked in ``failed_syncs``.  The caller invokes
:meth:`start` / :meth:`stop`; consecutive failed cycles stretch the wait
between cycles with exponential backoff.
"""

from __future__ import annotations

import threading
from typing import Optional

from retailsync.config import AppConfig
from retailsync.logger import StructuredLogger
from retailsync.services.base_service import BaseService
from retailsync.services.sync_orchestrator import SyncOrchestrator


class SyncWorkerService(BaseService):
    """Daemon thread that periodically runs the download sync.

    Parameters
    ----------
    orchestrator:
        The ``SyncOrchestrator`` that performs each sync.
    config:
        Supplies ``SYNC_WORKER_INTERVAL_S`` and ``SYNC_STALE_AFTER_S``.
    logger:
        Structured JSON logger.
    """

    _MAX_INTERVAL_S: float = 3600.0  # 1-hour cap

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._orchestrator = orchestrator
        self._base_interval_s: float = config.SYNC_WORKER_INTERVAL_S
        self._stale_after_s: float = config.SYNC_STALE_AFTER_S
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._consecutive_failures: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker on a daemon thread.  No-op when already running."""
        if self._thread is not None and self._thread.is_alive():
            self._logger.debug("Sync worker already running.")
            return

        self._stop_event.clear()
        self._consecutive_failures = 0

        self._thread = threading.Thread(
            target=self._run_loop,
            name="SyncWorker",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("Sync worker started.")

    def stop(self) -> None:
        """Signal the worker to stop and wait up to 10 s for it to exit.

        A sync in progress is asked to stop before its next page.
        """
        if self._thread is None:
            return

        self._stop_event.set()
        self._orchestrator.stop()
        self._thread.join(timeout=10.0)

        if self._thread.is_alive():
            self._logger.warning(
                "Sync worker thread did not terminate within 10 s."
            )
        else:
            self._logger.info("Sync worker stopped.")

        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def run_once(self) -> bool:
        """Run one cycle synchronously; returns ``True`` when it succeeded."""
        due = self._orchestrator.is_sync_due(self._stale_after_s)
        if due.failure is not None:
            self._record_failure(due.failure.message)
            return False

        if due.data:
            synced = self._orchestrator.sync_all()
            if synced.failure is not None:
                self._record_failure(synced.failure.message)
                return False

        retried = self._orchestrator.retry_failed()
        if retried.failure is not None:
            self._record_failure(retried.failure.message)
            return False

        self._consecutive_failures = 0
        return True

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Main loop executed on the daemon thread."""
        try:
            while not self._stop_event.is_set():
                self.run_once()
                interval = self._calculate_backoff_interval()
                if self._stop_event.wait(timeout=interval):
                    break
        except Exception:
            self._logger.error(
                "Sync worker thread terminated due to unhandled exception.",
                exc_info=True,
            )

    def _record_failure(self, message: str) -> None:
        self._consecutive_failures += 1
        self._logger.warning(
            "Sync cycle failed (%d in a row): %s", self._consecutive_failures, message,
        )

    def _calculate_backoff_interval(self) -> float:
        """Base interval, doubled per consecutive failure, capped."""
        if self._consecutive_failures == 0:
            return self._base_interval_s

        backoff = self._base_interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, max(self._MAX_INTERVAL_S, self._base_interval_s))
