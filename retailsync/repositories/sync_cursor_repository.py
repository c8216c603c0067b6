"""
Sync Cursor Repository.

Persists the per-table resumption point of the download sync.  The
orchestrator advances a cursor inside the same transaction that applies
the page, so a crash can repeat a page but never skip one.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Optional

from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger
from retailsync.models.results import Result
from retailsync.models.sync_models import SyncCursor
from retailsync.repositories.base_repository import BaseRepository


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncCursorRepository(BaseRepository):
    """Data access layer for ``sync_cursors``."""

    TABLE = "sync_cursors"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get(self, table_name: str) -> Result[Optional[SyncCursor]]:
        def _sqlite() -> Optional[SyncCursor]:
            row = self.sqlite.execute(
                f"SELECT table_name, part_no, update_date, last_synced_at "
                f"FROM {self.TABLE} WHERE table_name = ?",
                (table_name,),
            ).fetchone()
            return SyncCursor(**dict(row)) if row else None

        return self._read(_sqlite, operation_name="get (sync_cursors)", entity=table_name)

    def get_all(self) -> Result[list[SyncCursor]]:
        def _sqlite() -> list[SyncCursor]:
            rows = self.sqlite.execute(
                f"SELECT table_name, part_no, update_date, last_synced_at "
                f"FROM {self.TABLE} ORDER BY table_name",
            ).fetchall()
            return [SyncCursor(**dict(row)) for row in rows]

        return self._read(_sqlite, operation_name="get_all (sync_cursors)")

    def save(self, cursor: SyncCursor) -> Result[None]:
        def _sqlite() -> None:
            self.sqlite.execute(
                f"""
                INSERT INTO {self.TABLE} (table_name, part_no, update_date, last_synced_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(table_name) DO UPDATE SET
                    part_no = excluded.part_no,
                    update_date = excluded.update_date,
                    last_synced_at = excluded.last_synced_at,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (cursor.table_name, cursor.part_no, cursor.update_date, cursor.last_synced_at),
            )
            self._commit()

        return self._write(_sqlite, operation_name="save (sync_cursors)", entity=cursor.table_name)

    def advance_part(self, table_name: str, part_no: int, update_date: str) -> Result[None]:
        """Record *part_no* as the next page to fetch; ``last_synced_at`` is kept."""

        def _sqlite() -> None:
            self.sqlite.execute(
                f"""
                INSERT INTO {self.TABLE} (table_name, part_no, update_date)
                VALUES (?, ?, ?)
                ON CONFLICT(table_name) DO UPDATE SET
                    part_no = excluded.part_no,
                    update_date = excluded.update_date,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (table_name, part_no, update_date),
            )
            self._commit()

        return self._write(
            _sqlite,
            operation_name="advance_part (sync_cursors)",
            entity=table_name,
            part_no=part_no,
        )

    def complete(self, table_name: str, updated_date: str) -> Result[None]:
        """Mark *table_name* fully synced up to the server checkpoint *updated_date*."""
        return self.save(
            SyncCursor(
                table_name=table_name,
                part_no=0,
                update_date=updated_date,
                last_synced_at=_utc_now().isoformat(),
            )
        )

    def clear_all(self) -> Result[int]:
        def _sqlite() -> int:
            cursor = self.sqlite.execute(f"DELETE FROM {self.TABLE}")
            self._commit()
            return cursor.rowcount

        return self._write(_sqlite, operation_name="clear_all (sync_cursors)")

    def stale_tables(
        self, threshold_s: float, table_names: Iterable[str],
    ) -> Result[list[str]]:
        """Tables in *table_names* not completed within the last *threshold_s* seconds.

        A table with no cursor, or a cursor that never completed, is stale.
        """
        names = list(table_names)
        found = self.get_all()
        if found.failure is not None:
            return Result.fail(found.failure)

        cutoff = _utc_now() - timedelta(seconds=threshold_s)
        synced_at: dict[str, Optional[str]] = {
            c.table_name: c.last_synced_at for c in found.data or []
        }
        stale: list[str] = []
        for name in names:
            stamp = synced_at.get(name)
            if not stamp:
                stale.append(name)
                continue
            try:
                when = datetime.fromisoformat(stamp)
            except ValueError:
                self._logger.warning("Unparseable last_synced_at %r for %s", stamp, name)
                stale.append(name)
                continue
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            if when < cutoff:
                stale.append(name)
        return Result.ok(stale)
