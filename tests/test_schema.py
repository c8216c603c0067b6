"""Tests for schema creation and the migration runner."""
from __future__ import annotations

import sqlite3

import pytest

from retailsync import schema
from retailsync.logger import StructuredLogger
from retailsync.schema import CURRENT_SCHEMA_VERSION, initialize_schema


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


def _indexes(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
    return {r[0] for r in rows}


def _version(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()[0]


def _columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()]


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def initialised(conn: sqlite3.Connection, logger: StructuredLogger) -> sqlite3.Connection:
    initialize_schema(conn, logger)
    conn.execute("INSERT INTO customers (customer_id, name) VALUES (1, 'Kept')")
    conn.commit()
    return conn


class TestFreshDatabase:

    def test_creates_every_table(self, conn: sqlite3.Connection, logger: StructuredLogger):
        initialize_schema(conn, logger)
        assert {
            "categories", "sub_categories", "units", "products", "routes", "salesmen",
            "suppliers", "customers", "sync_cursors", "failed_syncs", "schema_version",
        } <= _tables(conn)
        assert _version(conn) == CURRENT_SCHEMA_VERSION == 1
        assert "idx_customers_route_id" in _indexes(conn)
        assert "idx_products_category_id" in _indexes(conn)
        assert "last_synced_at" in _columns(conn, "sync_cursors")

    def test_is_idempotent(self, conn: sqlite3.Connection, logger: StructuredLogger):
        initialize_schema(conn, logger)
        conn.execute("INSERT INTO routes (route_id, name) VALUES (1, 'North')")
        conn.commit()

        initialize_schema(conn, logger)

        assert conn.execute("SELECT COUNT(*) FROM routes").fetchone()[0] == 1
        assert _version(conn) == CURRENT_SCHEMA_VERSION

    def test_customer_rating_defaults_to_ten(self, conn: sqlite3.Connection, logger: StructuredLogger):
        initialize_schema(conn, logger)
        conn.execute("INSERT INTO customers (customer_id) VALUES (1)")
        assert conn.execute("SELECT rating FROM customers").fetchone()[0] == 10

    def test_prices_are_stored_as_real(self, conn: sqlite3.Connection, logger: StructuredLogger):
        initialize_schema(conn, logger)
        conn.execute("INSERT INTO products (product_id, price) VALUES (1, 12.5)")
        row = conn.execute("SELECT price, mrp, default_unit_id FROM products").fetchone()
        assert row == (12.5, 0, -1)

    def test_server_id_is_unique(self, conn: sqlite3.Connection, logger: StructuredLogger):
        initialize_schema(conn, logger)
        conn.execute("INSERT INTO categories (category_id, name) VALUES (1, 'A')")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO categories (category_id, name) VALUES (1, 'B')")


class TestMigrations:

    def test_registered_migration_runs_on_upgrade(
        self,
        initialised: sqlite3.Connection,
        logger: StructuredLogger,
        monkeypatch: pytest.MonkeyPatch,
    ):
        def add_column(conn: sqlite3.Connection, _logger: StructuredLogger) -> None:
            conn.execute("ALTER TABLE customers ADD COLUMN credit_limit REAL DEFAULT 0")

        monkeypatch.setattr(schema, "CURRENT_SCHEMA_VERSION", 2)
        monkeypatch.setitem(schema._MIGRATIONS, 2, add_column)

        initialize_schema(initialised, logger)

        assert _version(initialised) == 2
        assert "credit_limit" in _columns(initialised, "customers")
        assert initialised.execute("SELECT name FROM customers").fetchone()[0] == "Kept"

    def test_failed_migration_rolls_back(
        self,
        initialised: sqlite3.Connection,
        logger: StructuredLogger,
        monkeypatch: pytest.MonkeyPatch,
    ):
        def broken(conn: sqlite3.Connection, _logger: StructuredLogger) -> None:
            conn.execute("SELECT * FROM no_such_table")

        monkeypatch.setattr(schema, "CURRENT_SCHEMA_VERSION", 2)
        monkeypatch.setitem(schema._MIGRATIONS, 2, broken)

        with pytest.raises(sqlite3.OperationalError):
            initialize_schema(initialised, logger)

        assert _version(initialised) == 1

    def test_nothing_registered_for_the_initial_schema(self):
        assert schema._MIGRATIONS == {}
