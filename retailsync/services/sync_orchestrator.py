"""
Sync Orchestrator.

Downloads every entity from the remote API into the local cache, page by
page, in dependency order.  For each entity:

1. Load the persisted cursor ``(update_date, part_no)``.
2. Request page ``part_no``.  A non-empty page is applied with
   ``add_many`` and the cursor is advanced to ``part_no + 1`` in the *same*
   transaction, so the cursor only moves past data that is durably stored.
3. If that transaction fails, the page is applied record by record.  Each
   record that still fails is parked in ``failed_syncs`` and the cursor
   advances anyway.
4. An empty page completes the entity: the server's ``updated_date``
   becomes the checkpoint for the next incremental sync and ``part_no``
   resets to 0.
5. A network or server failure stops the run and keeps the cursor, so the
   next run resumes at the page that failed.

Each entity has its own lock.  A request for an entity that is already
syncing is skipped rather than queued.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from typing import Optional

from pydantic import BaseModel

from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger, log_context
from retailsync.models.results import Failure, Result
from retailsync.models.sync_models import (
    EntitySyncReport,
    RetryReport,
    SyncCursor,
    SyncReport,
)
from retailsync.repositories.entity_repository import EntityRepository
from retailsync.repositories.failed_sync_repository import FailedSyncRepository
from retailsync.repositories.sync_cursor_repository import SyncCursorRepository
from retailsync.services.base_service import BaseService

# Weight given to each finished page of the entity in progress.
_PAGE_PROGRESS_STEP: float = 0.1
_PAGE_PROGRESS_CAP: float = 0.95


class _StepFailed(Exception):
    """Raised inside a batch to roll it back when a repository step fails."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


def _raise_on_failure(result: Result) -> None:
    if result.failure is not None:
        raise _StepFailed(result.failure)


class SyncOrchestrator(BaseService):
    """Drives the download sync across all entity repositories.

    Parameters
    ----------
    db:
        Shared ``DatabaseManager``; page applies run inside its
        ``batch_write()``.
    repositories:
        Entity repositories in download order.
    cursors / failed_syncs:
        Bookkeeping stores.
    user_type / user_id:
        The account the device syncs for; sent with every page request and
        used to skip entities the account does not download.
    batch_limit:
        Records requested per page.
    """

    def __init__(
        self,
        db: DatabaseManager,
        repositories: Sequence[EntityRepository],
        cursors: SyncCursorRepository,
        failed_syncs: FailedSyncRepository,
        logger: StructuredLogger,
        user_type: int = 1,
        user_id: int = -1,
        batch_limit: int = 500,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._repositories: tuple[EntityRepository, ...] = tuple(repositories)
        self._by_table: dict[str, EntityRepository] = {r.table: r for r in self._repositories}
        self._cursors = cursors
        self._failed = failed_syncs
        self._user_type = user_type
        self._user_id = user_id
        self._batch_limit = batch_limit

        self._entity_locks: dict[str, threading.Lock] = {
            r.table: threading.Lock() for r in self._repositories
        }
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()

        self._progress_lock = threading.Lock()
        self._total_entities: int = 0
        self._completed_entities: int = 0
        self._current_pages: int = 0
        self._last_report: Optional[SyncReport] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def repositories(self) -> tuple[EntityRepository, ...]:
        return self._repositories

    def repository(self, table_name: str) -> Optional[EntityRepository]:
        return self._by_table.get(table_name)

    @property
    def active_repositories(self) -> list[EntityRepository]:
        """Repositories the configured account downloads, in sync order."""
        return [r for r in self._repositories if r.syncs_for(self._user_type)]

    @property
    def is_syncing(self) -> bool:
        return self._run_lock.locked()

    @property
    def progress(self) -> float:
        """Fraction of the current (or last) run done, between 0.0 and 1.0."""
        with self._progress_lock:
            if self._total_entities == 0:
                return 0.0
            partial = min(self._current_pages * _PAGE_PROGRESS_STEP, _PAGE_PROGRESS_CAP)
            if self._completed_entities >= self._total_entities:
                partial = 0.0
            return min(1.0, (self._completed_entities + partial) / self._total_entities)

    @property
    def last_report(self) -> Optional[SyncReport]:
        """Report of the most recent ``sync_all`` run, including partial runs."""
        return self._last_report

    def stop(self) -> None:
        """Ask the running sync to stop before its next page request."""
        self._stop_event.set()

    # ------------------------------------------------------------------
    # Full sync
    # ------------------------------------------------------------------

    def sync_all(self, full_resync: bool = False) -> Result[SyncReport]:
        """Sync every entity the account downloads, in order.

        With *full_resync* the cache, cursors and failed syncs are wiped
        first and everything is downloaded from page 0.  The run stops at
        the first entity that fails; its failure is returned and
        :pyattr:`last_report` holds what was done before it.
        """
        if not self._run_lock.acquire(blocking=False):
            self._logger.info("Sync already in progress; request skipped.")
            return Result.ok(SyncReport(skipped=True, full_resync=full_resync))

        try:
            self._stop_event.clear()
            report = SyncReport(full_resync=full_resync)
            self._last_report = report

            if full_resync:
                reset = self._reset_local_state()
                if reset.failure is not None:
                    report.failure = reset.failure
                    return Result.fail(reset.failure)

            repositories = self.active_repositories
            with self._progress_lock:
                self._total_entities = len(repositories)
                self._completed_entities = 0
                self._current_pages = 0

            self._logger.info(
                "Sync started for %d entities (user_type=%d, full_resync=%s).",
                len(repositories),
                self._user_type,
                full_resync,
            )
            for repository in repositories:
                if self._stop_event.is_set():
                    report.stopped = True
                    break

                result = self.sync_entity(repository)
                if result.failure is not None:
                    report.failure = result.failure
                    report.entities.append(
                        EntitySyncReport(
                            entity=repository.name,
                            table_name=repository.table,
                            failure=result.failure,
                        )
                    )
                    self._logger.warning(
                        "Sync stopped at %s: %s", repository.name, result.failure.message,
                    )
                    return Result.fail(result.failure)

                entity_report = result.data
                assert entity_report is not None
                report.entities.append(entity_report)
                if entity_report.stopped:
                    report.stopped = True
                    break
                with self._progress_lock:
                    self._completed_entities += 1
                    self._current_pages = 0

            self._logger.info(
                "Sync finished: %d records across %d entities%s.",
                report.records,
                len(report.entities),
                " (stopped)" if report.stopped else "",
            )
            return Result.ok(report)
        finally:
            self._run_lock.release()

    def _reset_local_state(self) -> Result[None]:
        """Wipe cached entities and sync bookkeeping in one transaction."""
        try:
            with self._db.batch_write():
                for repository in reversed(self._repositories):
                    _raise_on_failure(repository.clear_all())
                _raise_on_failure(self._cursors.clear_all())
                _raise_on_failure(self._failed.clear_all())
        except _StepFailed as exc:
            return Result.fail(exc.failure)
        self._logger.info("Local cache cleared for full resync.")
        return Result.ok()

    # ------------------------------------------------------------------
    # Single entity
    # ------------------------------------------------------------------

    def sync_entity(self, repository: EntityRepository) -> Result[EntitySyncReport]:
        """Download *repository*'s entity from its cursor to the end."""
        lock = self._entity_locks.setdefault(repository.table, threading.Lock())
        if not lock.acquire(blocking=False):
            self._logger.info("%s sync already running; skipped.", repository.name)
            return Result.ok(
                EntitySyncReport(
                    entity=repository.name, table_name=repository.table, skipped=True,
                )
            )
        try:
            return self._download(repository)
        finally:
            lock.release()

    def _download(self, repository: EntityRepository) -> Result[EntitySyncReport]:
        table = repository.table
        loaded = self._cursors.get(table)
        if loaded.failure is not None:
            return Result.fail(loaded.failure.with_context(entity=repository.name))
        cursor = loaded.data or SyncCursor(table_name=table)

        report = EntitySyncReport(entity=repository.name, table_name=table)
        part_no = cursor.part_no
        if part_no > 0:
            self._logger.info(
                "Resuming %s sync at page %d.", repository.name, part_no,
                extra=log_context(entity=repository.name, part_no=part_no),
            )

        while True:
            if self._stop_event.is_set():
                report.stopped = True
                return Result.ok(report)

            page = repository.sync_from_api(
                part_no=part_no,
                limit=self._batch_limit,
                user_type=self._user_type,
                user_id=self._user_id,
                update_date=cursor.update_date,
            )
            if page.failure is not None:
                return Result.fail(
                    page.failure.with_context(entity=repository.name, part_no=part_no)
                )

            envelope = page.data
            assert envelope is not None
            if not envelope.data:
                done = self._cursors.complete(table, envelope.updated_date or cursor.update_date)
                if done.failure is not None:
                    return Result.fail(done.failure.with_context(entity=repository.name))
                report.completed = True
                self._logger.info(
                    "%s sync complete: %d records in %d pages.",
                    repository.name,
                    report.records,
                    report.pages,
                    extra=log_context(entity=repository.name, part_no=part_no),
                )
                return Result.ok(report)

            applied = self._apply_page(repository, envelope.data, part_no, cursor.update_date)
            if applied.failure is not None:
                return Result.fail(
                    applied.failure.with_context(entity=repository.name, part_no=part_no)
                )
            failed_ids = applied.data or []
            identified = sum(1 for r in envelope.data if repository.codec.entity_id(r) >= 0)
            report.pages += 1
            report.records += identified - len(failed_ids)
            report.failed_ids.extend(failed_ids)
            part_no += 1
            with self._progress_lock:
                self._current_pages += 1

    def _apply_page(
        self,
        repository: EntityRepository,
        records: Sequence[BaseModel],
        part_no: int,
        update_date: str,
    ) -> Result[list[int]]:
        """Store one page and advance the cursor; returns the ids that failed."""
        codec = repository.codec
        valid = [r for r in records if codec.entity_id(r) >= 0]
        if len(valid) < len(records):
            self._logger.warning(
                "%s page %d: dropped %d records without an identifier.",
                repository.name,
                part_no,
                len(records) - len(valid),
                extra=log_context(entity=repository.name, part_no=part_no),
            )

        try:
            with self._db.batch_write():
                _raise_on_failure(repository.add_many(valid))
                _raise_on_failure(
                    self._cursors.advance_part(repository.table, part_no + 1, update_date)
                )
            return Result.ok([])
        except _StepFailed as exc:
            self._logger.warning(
                "%s page %d could not be applied as one batch (%s); "
                "applying records individually.",
                repository.name,
                part_no,
                exc.failure.message,
                extra=log_context(entity=repository.name, part_no=part_no),
            )

        return self._apply_individually(repository, valid, part_no, update_date)

    def _apply_individually(
        self,
        repository: EntityRepository,
        records: Iterable[BaseModel],
        part_no: int,
        update_date: str,
    ) -> Result[list[int]]:
        codec = repository.codec
        failed_ids: list[int] = []
        for record in records:
            stored = repository.add_one(record)
            if stored.failure is None:
                continue
            data_id = codec.entity_id(record)
            failed_ids.append(data_id)
            parked = self._failed.add(repository.table, data_id, part_no, stored.failure.message)
            if parked.failure is not None:
                return Result.fail(parked.failure)

        advanced = self._cursors.advance_part(repository.table, part_no + 1, update_date)
        if advanced.failure is not None:
            return Result.fail(advanced.failure)
        if failed_ids:
            self._logger.warning(
                "%s page %d: %d records parked for retry.",
                repository.name,
                part_no,
                len(failed_ids),
                extra=log_context(entity=repository.name, part_no=part_no),
            )
        return Result.ok(failed_ids)

    # ------------------------------------------------------------------
    # Failed-record retry
    # ------------------------------------------------------------------

    def retry_failed(self) -> Result[RetryReport]:
        """Fetch each parked record again by id and store it.

        Recovered records leave ``failed_syncs``.  A record the server no
        longer returns is dropped from the list.  Entities currently
        syncing are left for the next retry.
        """
        parked = self._failed.get_all()
        if parked.failure is not None:
            return Result.fail(parked.failure)

        report = RetryReport()
        for failed in parked.data or []:
            repository = self._by_table.get(failed.table_name)
            if repository is None:
                self._logger.warning(
                    "Failed sync %s for unknown table %s ignored.", failed.id, failed.table_name,
                )
                continue

            lock = self._entity_locks[repository.table]
            if not lock.acquire(blocking=False):
                report.still_failing.append(failed.data_id)
                continue
            try:
                report.attempted += 1
                outcome = self._retry_one(repository, failed.data_id)
            finally:
                lock.release()

            if outcome.failure is not None:
                if not outcome.failure.is_retryable:
                    self._logger.warning(
                        "Retry of %s %d failed: %s",
                        repository.name,
                        failed.data_id,
                        outcome.failure.message,
                        extra=log_context(entity=repository.name, record_id=failed.data_id),
                    )
                report.still_failing.append(failed.data_id)
                continue

            assert failed.id is not None
            removed = self._failed.delete(failed.id)
            if removed.failure is not None:
                return Result.fail(removed.failure)
            if outcome.data:
                report.recovered.append(failed.data_id)
            else:
                report.dropped.append(failed.data_id)

        if report.attempted:
            self._logger.info(
                "Retried %d failed records: %d recovered, %d dropped, %d still failing.",
                report.attempted,
                len(report.recovered),
                len(report.dropped),
                len(report.still_failing),
            )
        return Result.ok(report)

    def _retry_one(self, repository: EntityRepository, data_id: int) -> Result[bool]:
        """Re-download one record; ``ok(False)`` when the server no longer has it."""
        page = repository.sync_from_api(
            user_type=self._user_type, user_id=self._user_id, id=data_id,
        )
        if page.failure is not None:
            return Result.fail(page.failure)
        assert page.data is not None
        records = [r for r in page.data.data if repository.codec.entity_id(r) >= 0]
        if not records:
            return Result.ok(False)
        stored = repository.add_many(records)
        if stored.failure is not None:
            return Result.fail(stored.failure)
        return Result.ok(True)

    # ------------------------------------------------------------------
    # Staleness
    # ------------------------------------------------------------------

    def is_sync_due(self, threshold_s: float) -> Result[bool]:
        """``True`` when any downloaded entity last completed over *threshold_s* ago."""
        stale = self._cursors.stale_tables(
            threshold_s, (r.table for r in self.active_repositories),
        )
        if stale.failure is not None:
            return Result.fail(stale.failure)
        return Result.ok(bool(stale.data))
