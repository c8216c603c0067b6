"""
Failed Sync Repository.

Records that could not be stored while their page was applied.  Each row
names the table and the server identifier so the record can be fetched
again on its own.
"""

from __future__ import annotations

from typing import Optional

from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger
from retailsync.models.results import Result
from retailsync.models.sync_models import FailedSync
from retailsync.repositories.base_repository import BaseRepository


class FailedSyncRepository(BaseRepository):
    """Data access layer for ``failed_syncs``."""

    TABLE = "failed_syncs"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def add(self, table_name: str, data_id: int, part_no: int, error: str) -> Result[None]:
        """Record a failure; a second failure of the same record replaces the first."""

        def _sqlite() -> None:
            self.sqlite.execute(
                f"""
                INSERT INTO {self.TABLE} (table_name, data_id, part_no, error_message)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(table_name, data_id) DO UPDATE SET
                    part_no = excluded.part_no,
                    error_message = excluded.error_message,
                    created_at = CURRENT_TIMESTAMP
                """,
                (table_name, data_id, part_no, error),
            )
            self._commit()

        return self._write(
            _sqlite,
            operation_name="add (failed_syncs)",
            entity=table_name,
            record_id=data_id,
        )

    def get_all(self, table_name: Optional[str] = None) -> Result[list[FailedSync]]:
        def _sqlite() -> list[FailedSync]:
            if table_name is None:
                rows = self.sqlite.execute(
                    f"SELECT * FROM {self.TABLE} ORDER BY id",
                ).fetchall()
            else:
                rows = self.sqlite.execute(
                    f"SELECT * FROM {self.TABLE} WHERE table_name = ? ORDER BY id",
                    (table_name,),
                ).fetchall()
            return [FailedSync(**dict(row)) for row in rows]

        return self._read(_sqlite, operation_name="get_all (failed_syncs)")

    def delete(self, failed_id: int) -> Result[int]:
        def _sqlite() -> int:
            cursor = self.sqlite.execute(
                f"DELETE FROM {self.TABLE} WHERE id = ?", (failed_id,),
            )
            self._commit()
            return cursor.rowcount

        return self._write(_sqlite, operation_name="delete (failed_syncs)", record_id=failed_id)

    def clear_all(self) -> Result[int]:
        def _sqlite() -> int:
            cursor = self.sqlite.execute(f"DELETE FROM {self.TABLE}")
            self._commit()
            return cursor.rowcount

        return self._write(_sqlite, operation_name="clear_all (failed_syncs)")
