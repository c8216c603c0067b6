"""
Centralized SQLite Schema Initialization.

Defines the canonical schema for the RetailSync local cache and provides a
single entry-point -- :func:`initialize_schema` -- that creates all required
tables idempotently.  A lightweight ``schema_version`` table tracks applied
migrations so that future schema changes can be rolled forward without
losing cached rows or sync cursors.

Migration Strategy
~~~~~~~~~~~~~~~~~~
- **Fresh databases** (version 0): all tables are created in one shot from
  :data:`_TABLE_DEFINITIONS`.
- **Existing databases** (version N > 0): only incremental migrations
  registered in :data:`_MIGRATIONS` are executed.
- The entire upgrade (migrations + version bump) is wrapped in a single
  SQLite transaction.  On failure the database rolls back to version N
  and the next startup retries.

Every entity table follows the same layout: a local surrogate ``id``, the
server identifier ``<entity>_id`` (``NOT NULL UNIQUE``, the upsert key),
descriptive columns, ``flag`` for logical deletion and verbatim
``created_at`` / ``updated_at`` strings.

Usage::

    from retailsync.schema import initialize_schema

    initialize_schema(db.sqlite, logger)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from retailsync.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

# ---------------------------------------------------------------------------
# Schema version -- bump this whenever a migration is added.
# ---------------------------------------------------------------------------
CURRENT_SCHEMA_VERSION: int = 1

# ---------------------------------------------------------------------------
# DDL statements for every table in the local database.
# ---------------------------------------------------------------------------
_TABLE_DEFINITIONS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- product taxonomy -----------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        category_id INTEGER NOT NULL UNIQUE,
        name TEXT NOT NULL DEFAULT '',
        remark TEXT NOT NULL DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sub_categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sub_category_id INTEGER NOT NULL UNIQUE,
        parent_id INTEGER NOT NULL DEFAULT -1,
        name TEXT NOT NULL DEFAULT '',
        remark TEXT NOT NULL DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS units (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        unit_id INTEGER NOT NULL UNIQUE,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        display_name TEXT NOT NULL DEFAULT '',
        type INTEGER NOT NULL DEFAULT 0,
        base_id INTEGER NOT NULL DEFAULT -1,
        base_qty REAL NOT NULL DEFAULT 0,
        comment TEXT NOT NULL DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        product_id INTEGER NOT NULL UNIQUE,
        code TEXT NOT NULL DEFAULT '',
        barcode TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        sub_name TEXT NOT NULL DEFAULT '',
        brand TEXT NOT NULL DEFAULT '',
        sub_brand TEXT NOT NULL DEFAULT '',
        category_id INTEGER NOT NULL DEFAULT -1,
        sub_category_id INTEGER NOT NULL DEFAULT -1,
        default_supplier_id INTEGER NOT NULL DEFAULT -1,
        auto_send_flag INTEGER NOT NULL DEFAULT -1,
        base_unit_id INTEGER NOT NULL DEFAULT -1,
        default_unit_id INTEGER NOT NULL DEFAULT -1,
        price REAL NOT NULL DEFAULT 0,
        mrp REAL NOT NULL DEFAULT 0,
        retail_price REAL NOT NULL DEFAULT 0,
        fitting_charge REAL NOT NULL DEFAULT 0,
        note TEXT NOT NULL DEFAULT '',
        photo_url TEXT NOT NULL DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    # -- field force ----------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS routes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        route_id INTEGER NOT NULL UNIQUE,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        salesman_id INTEGER NOT NULL DEFAULT -1,
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS salesmen (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        salesman_id INTEGER NOT NULL UNIQUE,
        user_id INTEGER NOT NULL DEFAULT -1,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        address TEXT NOT NULL DEFAULT '',
        device_token TEXT DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS suppliers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        supplier_id INTEGER NOT NULL UNIQUE,
        user_id INTEGER NOT NULL DEFAULT -1,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        address TEXT NOT NULL DEFAULT '',
        device_token TEXT DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id INTEGER NOT NULL UNIQUE,
        code TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        address TEXT NOT NULL DEFAULT '',
        route_id INTEGER NOT NULL DEFAULT -1,
        salesman_id INTEGER NOT NULL DEFAULT -1,
        rating INTEGER DEFAULT 10,
        device_token TEXT DEFAULT '',
        flag INTEGER DEFAULT 1,
        created_at TEXT DEFAULT '',
        updated_at TEXT DEFAULT ''
    )
    """,
    # -- sync bookkeeping -----------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS sync_cursors (
        table_name TEXT PRIMARY KEY,
        part_no INTEGER NOT NULL DEFAULT 0,
        update_date TEXT NOT NULL DEFAULT '',
        last_synced_at TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS failed_syncs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        table_name TEXT NOT NULL,
        data_id INTEGER NOT NULL,
        part_no INTEGER NOT NULL DEFAULT 0,
        error_message TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (table_name, data_id)
    )
    """,
]

# Lookup indexes for search and join columns.
_INDEX_DEFINITIONS: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_sub_categories_parent_id ON sub_categories(parent_id)",
    "CREATE INDEX IF NOT EXISTS idx_units_base_id ON units(base_id)",
    "CREATE INDEX IF NOT EXISTS idx_products_category_id ON products(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_products_sub_category_id ON products(sub_category_id)",
    "CREATE INDEX IF NOT EXISTS idx_routes_salesman_id ON routes(salesman_id)",
    "CREATE INDEX IF NOT EXISTS idx_salesmen_user_id ON salesmen(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_customers_route_id ON customers(route_id)",
    "CREATE INDEX IF NOT EXISTS idx_customers_salesman_id ON customers(salesman_id)",
    "CREATE INDEX IF NOT EXISTS idx_failed_syncs_table_name ON failed_syncs(table_name)",
]


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_version`` table if it does not yet exist."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version, or ``0`` if unset."""
    cursor: sqlite3.Cursor = conn.execute(
        "SELECT version FROM schema_version WHERE id = 1"
    )
    row: tuple[int] | None = cursor.fetchone()
    return row[0] if row is not None else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Upsert the single-row version tracker to *version*.

    Does **not** commit, so the version bump is atomic with schema changes.
    """
    conn.execute(
        """
        INSERT INTO schema_version (id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                      applied_at = CURRENT_TIMESTAMP
        """,
        (version,),
    )


def _create_all_tables(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Execute every DDL statement for a fresh (version 0) database.

    Does **not** commit.
    """
    for ddl in _TABLE_DEFINITIONS:
        conn.execute(ddl)
    for ddl in _INDEX_DEFINITIONS:
        conn.execute(ddl)
    logger.info(
        f"All {len(_TABLE_DEFINITIONS)} tables created or verified successfully."
    )


# ---------------------------------------------------------------------------
# Migration registry: maps *target* version to its migration function.
# Version 1 is the initial schema; register version 2 here when it changes.
# ---------------------------------------------------------------------------

MigrationFunc = Callable[[sqlite3.Connection, StructuredLogger], None]

_MIGRATIONS: dict[int, MigrationFunc] = {}


def _run_incremental_migrations(
    conn: sqlite3.Connection,
    logger: StructuredLogger,
    from_version: int,
    to_version: int,
) -> None:
    """Run all registered migrations in ``(from_version, to_version]``.

    Does **not** commit.
    """
    versions_to_apply: list[int] = sorted(
        v for v in _MIGRATIONS if from_version < v <= to_version
    )

    if not versions_to_apply:
        logger.info("No incremental migrations to apply.")
        return

    logger.info(
        f"Applying {len(versions_to_apply)} migration(s): "
        f"{' → '.join(str(v) for v in versions_to_apply)}"
    )
    for version in versions_to_apply:
        logger.info(f"Running migration to version {version} …")
        _MIGRATIONS[version](conn, logger)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the local SQLite database matches the current schema version.

    Fresh databases get every table; older ones run the registered
    migrations.  The upgrade and the version bump commit together, or
    roll back together so the next startup retries.  Safe to call on
    every startup.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current}).")
        return

    logger.info(
        f"Upgrading schema from version {current} "
        f"to {CURRENT_SCHEMA_VERSION} …"
    )

    try:
        if current == 0:
            _create_all_tables(conn, logger)
        else:
            _run_incremental_migrations(
                conn, logger, current, CURRENT_SCHEMA_VERSION,
            )

        _set_schema_version(conn, CURRENT_SCHEMA_VERSION)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error(
            f"Schema migration failed; rolled back to version {current}."
        )
        raise

    logger.info(f"Schema initialised at version {CURRENT_SCHEMA_VERSION}.")
