"""Tests for the SQLite connection manager and its batch transaction."""
from __future__ import annotations

import pytest

from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger


def _count(db: DatabaseManager) -> int:
    return db.sqlite.execute("SELECT COUNT(*) FROM routes").fetchone()[0]


class TestBatchWrite:

    def test_commits_on_success(self, db: DatabaseManager):
        with db.batch_write():
            assert db.in_batch
            db.sqlite.execute("INSERT INTO routes (route_id, name) VALUES (1, 'North')")
        assert not db.in_batch
        assert not db.sqlite.in_transaction
        assert _count(db) == 1

    def test_rolls_back_on_exception(self, db: DatabaseManager):
        with pytest.raises(RuntimeError):
            with db.batch_write():
                db.sqlite.execute("INSERT INTO routes (route_id, name) VALUES (1, 'North')")
                raise RuntimeError("abort")
        assert not db.in_batch
        assert _count(db) == 0

    def test_nested_batch_joins_outer(self, db: DatabaseManager):
        """An inner batch does not commit; the outer rollback undoes it."""
        with pytest.raises(RuntimeError):
            with db.batch_write():
                with db.batch_write():
                    db.sqlite.execute("INSERT INTO routes (route_id, name) VALUES (1, 'North')")
                assert db.in_batch
                raise RuntimeError("abort")
        assert _count(db) == 0


class TestLifecycle:

    def test_failed_sync_count(self, db: DatabaseManager):
        assert db.get_failed_sync_count() == 0
        db.sqlite.execute(
            "INSERT INTO failed_syncs (table_name, data_id) VALUES ('customers', 5)"
        )
        assert db.get_failed_sync_count() == 1

    def test_failed_sync_count_without_schema(self, logger: StructuredLogger):
        bare = DatabaseManager(sqlite_path=":memory:", logger=logger)
        assert bare.get_failed_sync_count() == 0
        bare.close()

    def test_close_is_repeatable(self, logger: StructuredLogger):
        manager = DatabaseManager(sqlite_path=":memory:", logger=logger)
        manager.close()
        manager.close()

    def test_file_database(self, tmp_path, logger: StructuredLogger):
        manager = DatabaseManager(sqlite_path=tmp_path / "cache.db", logger=logger)
        mode = manager.sqlite.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"
        manager.close()
        assert (tmp_path / "cache.db").exists()
