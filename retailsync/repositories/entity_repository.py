"""
Entity Repository.

One generic repository serves every synchronised entity.  What differs
between customers, suppliers, routes and the rest (table, codec, endpoints,
search and join declarations, local-only columns) is captured in an
:class:`EntitySpec`; the SQL and the remote calls are written once here.

Local operations read and write the SQLite cache.  Remote operations are
API-first: the server is called, and only a confirmed server record is
written locally, so the cache never holds a record the server rejected.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from retailsync.api_client import ApiClient
from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger, log_context
from retailsync.models.codec import EntityCodec, RowValue
from retailsync.models.envelope import (
    ApiListEnvelope,
    decode_list_envelope,
    decode_record_envelope,
)
from retailsync.models.results import ContextValue, Failure, Result
from retailsync.repositories.base_repository import BaseRepository
from retailsync.utils.string_helpers import LIKE_ESCAPE, like_pattern

R = TypeVar("R", bound=BaseModel)

__all__ = ["EndpointSet", "EntityRepository", "EntitySpec"]

FilterValue = Optional[int | str]


class EndpointSet(BaseModel):
    """Remote endpoints of one entity, relative to the API base URL."""

    model_config = ConfigDict(frozen=True)

    download: str
    create: str
    update: str
    flag: str


class EntitySpec(BaseModel):
    """Everything that makes one entity's repository different from another's.

    Column references in ``search_columns``, ``join_columns`` and
    ``filter_columns`` are qualified with ``alias`` or with the alias their
    join introduces.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    table: str
    alias: str
    codec: EntityCodec
    endpoints: EndpointSet
    natural_key: str
    natural_key_case_insensitive: bool = False
    natural_key_active_only: bool = False
    order_column: str = "name"
    search_columns: tuple[str, ...] = ()
    joins: tuple[str, ...] = ()
    join_columns: tuple[str, ...] = ()
    filter_columns: dict[str, str] = Field(default_factory=dict)
    preserved_columns: tuple[str, ...] = ("device_token", "created_at")
    # Envelope key of the record returned by create, update and flag calls.
    record_member: str = "data"
    excluded_user_types: frozenset[int] = frozenset()


class EntityRepository(BaseRepository, Generic[R]):
    """Cache and remote access for the entity described by *spec*."""

    def __init__(
        self,
        spec: EntitySpec,
        db: DatabaseManager,
        api: ApiClient,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(db, logger)
        self.TABLE = spec.table
        self._spec = spec
        self._codec: EntityCodec[R] = spec.codec
        self._api = api
        self._upsert_sql = self._build_upsert_sql()
        self._update_sql = self._build_update_sql()

    @property
    def spec(self) -> EntitySpec:
        return self._spec

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def codec(self) -> EntityCodec[R]:
        return self._codec

    def syncs_for(self, user_type: int) -> bool:
        """Whether accounts of *user_type* download this entity."""
        return user_type not in self._spec.excluded_user_types

    # ------------------------------------------------------------------
    # SQL construction
    # ------------------------------------------------------------------

    def _build_upsert_sql(self) -> str:
        table = self._spec.table
        id_column = self._codec.id_column
        columns = self._codec.writable_columns
        assignments = []
        for column in columns:
            if column == id_column:
                continue
            if column in self._spec.preserved_columns:
                assignments.append(
                    f"{column} = COALESCE(NULLIF(excluded.{column}, ''), {table}.{column})"
                )
            else:
                assignments.append(f"{column} = excluded.{column}")
        return (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(f':{c}' for c in columns)}) "
            f"ON CONFLICT({id_column}) DO UPDATE SET {', '.join(assignments)}"
        )

    def _build_update_sql(self) -> str:
        id_column = self._codec.id_column
        assignments = []
        for column in self._codec.writable_columns:
            if column == id_column:
                continue
            if column in self._spec.preserved_columns:
                assignments.append(f"{column} = COALESCE(NULLIF(:{column}, ''), {column})")
            else:
                assignments.append(f"{column} = :{column}")
        return (
            f"UPDATE {self._spec.table} SET {', '.join(assignments)} "
            f"WHERE {id_column} = :{id_column}"
        )

    def _select_sql(self) -> str:
        spec = self._spec
        columns = ", ".join((f"{spec.alias}.*", *spec.join_columns))
        joins = " ".join(spec.joins)
        return f"SELECT {columns} FROM {spec.table} AS {spec.alias} {joins}".rstrip()

    def _order_sql(self) -> str:
        a = self._spec.alias
        return (
            f"ORDER BY LOWER({a}.{self._spec.order_column}) ASC, "
            f"{a}.{self._codec.id_column} ASC"
        )

    def _filter_clauses(
        self, filters: Mapping[str, FilterValue],
    ) -> tuple[list[str], list[FilterValue]]:
        clauses: list[str] = []
        params: list[FilterValue] = []
        for key, value in filters.items():
            column = self._spec.filter_columns.get(key)
            if column is None:
                raise ValueError(f"{self.name} cannot be filtered by {key!r}")
            if value is None or value == -1:
                continue
            clauses.append(f"{column} = ?")
            params.append(value)
        return clauses, params

    def _decode_rows(self, rows: Iterable[sqlite3.Row]) -> list[R]:
        return [self._codec.from_row(dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Local reads
    # ------------------------------------------------------------------

    def get_all(
        self,
        search_key: str = "",
        for_admin: bool = False,
        **filters: FilterValue,
    ) -> Result[list[R]]:
        """Active records (every record when *for_admin*), ordered by name.

        A non-empty *search_key* keeps records where any searchable column
        contains it, case-insensitively.  *filters* are equality filters on
        the entity's declared filter columns; ``None`` or ``-1`` disables one.
        """
        a = self._spec.alias
        try:
            clauses, params = self._filter_clauses(filters)
        except ValueError as exc:
            return Result.fail(Failure.validation(str(exc), entity=self.name))

        if not for_admin:
            clauses.insert(0, f"{a}.flag = 1")
        if search_key and self._spec.search_columns:
            pattern = like_pattern(search_key)
            matches = " OR ".join(
                f"LOWER({column}) LIKE LOWER(?) ESCAPE '{LIKE_ESCAPE}'"
                for column in self._spec.search_columns
            )
            clauses.append(f"({matches})")
            params.extend(pattern for _ in self._spec.search_columns)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"{self._select_sql()} {where} {self._order_sql()}"

        def _sqlite() -> list[R]:
            return self._decode_rows(self.sqlite.execute(sql, params).fetchall())

        return self._read(_sqlite, operation_name=f"get_all ({self.TABLE})")

    def get_by_id(self, entity_id: int) -> Result[Optional[R]]:
        """The record with server identifier *entity_id*, or ``None``."""
        sql = (
            f"{self._select_sql()} "
            f"WHERE {self._spec.alias}.{self._codec.id_column} = ? LIMIT 1"
        )

        def _sqlite() -> Optional[R]:
            row = self.sqlite.execute(sql, (entity_id,)).fetchone()
            return self._codec.from_row(dict(row)) if row else None

        return self._read(
            _sqlite, operation_name=f"get_by_id ({self.TABLE})", record_id=entity_id,
        )

    def get_by_natural_key(
        self,
        key: str,
        exclude_id: Optional[int] = None,
        **filters: FilterValue,
    ) -> Result[list[R]]:
        """Records whose natural key equals *key*, for uniqueness checks.

        *exclude_id* leaves out the record being edited.
        """
        a = self._spec.alias
        column = f"{a}.{self._spec.natural_key}"
        try:
            clauses, params = self._filter_clauses(filters)
        except ValueError as exc:
            return Result.fail(Failure.validation(str(exc), entity=self.name))

        if self._spec.natural_key_case_insensitive:
            clauses.insert(0, f"LOWER({column}) = LOWER(?)")
        else:
            clauses.insert(0, f"{column} = ?")
        params.insert(0, key)
        if self._spec.natural_key_active_only:
            clauses.append(f"{a}.flag = 1")
        if exclude_id is not None:
            clauses.append(f"{a}.{self._codec.id_column} != ?")
            params.append(exclude_id)

        sql = f"{self._select_sql()} WHERE {' AND '.join(clauses)} {self._order_sql()}"

        def _sqlite() -> list[R]:
            return self._decode_rows(self.sqlite.execute(sql, params).fetchall())

        return self._read(_sqlite, operation_name=f"get_by_natural_key ({self.TABLE})")

    def get_last_entry(self) -> Result[Optional[R]]:
        """The record with the highest server identifier."""
        sql = (
            f"{self._select_sql()} "
            f"ORDER BY {self._spec.alias}.{self._codec.id_column} DESC LIMIT 1"
        )

        def _sqlite() -> Optional[R]:
            row = self.sqlite.execute(sql).fetchone()
            return self._codec.from_row(dict(row)) if row else None

        return self._read(_sqlite, operation_name=f"get_last_entry ({self.TABLE})")

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    def add_one(self, record: R) -> Result[None]:
        """Insert *record*, or update the row with the same server identifier."""
        row = self._codec.to_row(record)

        def _sqlite() -> None:
            self.sqlite.execute(self._upsert_sql, row)
            self._commit()

        return self._write(
            _sqlite,
            operation_name=f"add_one ({self.TABLE})",
            record_id=self._codec.entity_id(record),
        )

    def add_many(self, records: Iterable[R]) -> Result[int]:
        """Upsert every record in one transaction; all or nothing.

        Applying the same records twice leaves the table unchanged, local
        surrogate keys included.
        """
        rows: list[dict[str, RowValue]] = [self._codec.to_row(r) for r in records]

        def _sqlite() -> int:
            if rows:
                self.sqlite.executemany(self._upsert_sql, rows)
            self._commit()
            return len(rows)

        return self._write(_sqlite, operation_name=f"add_many ({self.TABLE})")

    def update_local(self, record: R) -> Result[int]:
        """Overwrite the stored row for *record*'s identifier.

        Preserved columns (``device_token``, ``created_at``) keep their
        stored value unless *record* carries a non-empty one.  Returns the
        number of rows changed (0 when the record is not cached).
        """
        row = self._codec.to_row(record)

        def _sqlite() -> int:
            cursor = self.sqlite.execute(self._update_sql, row)
            self._commit()
            return cursor.rowcount

        return self._write(
            _sqlite,
            operation_name=f"update_local ({self.TABLE})",
            record_id=self._codec.entity_id(record),
        )

    def update_flag_local(self, entity_id: int, flag: int) -> Result[int]:
        sql = f"UPDATE {self.TABLE} SET flag = ? WHERE {self._codec.id_column} = ?"

        def _sqlite() -> int:
            cursor = self.sqlite.execute(sql, (flag, entity_id))
            self._commit()
            return cursor.rowcount

        return self._write(
            _sqlite,
            operation_name=f"update_flag_local ({self.TABLE})",
            record_id=entity_id,
        )

    def clear_all(self) -> Result[int]:
        """Delete every cached row; used before a full resync."""

        def _sqlite() -> int:
            cursor = self.sqlite.execute(f"DELETE FROM {self.TABLE}")
            self._commit()
            return cursor.rowcount

        return self._write(_sqlite, operation_name=f"clear_all ({self.TABLE})")

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    def sync_from_api(
        self,
        part_no: int = 0,
        limit: int = 500,
        user_type: int = 1,
        user_id: int = -1,
        update_date: str = "",
        id: int = -1,
    ) -> Result[ApiListEnvelope[R]]:
        """Download one page, or one record when *id* is non-negative.

        Batch mode sends ``part_no``, ``limit``, ``user_type``, ``user_id``
        and ``update_date``; retry mode sends only ``id``.  Both return the
        same envelope.  Nothing is written locally; transport retries belong
        to the API client.
        """
        context: dict[str, ContextValue] = {"entity": self.name}
        if id >= 0:
            params: dict[str, int | str] = {"id": id}
            context["record_id"] = id
        else:
            context["part_no"] = part_no
            params = {
                "part_no": part_no,
                "limit": limit,
                "user_type": user_type,
                "user_id": user_id,
                "update_date": update_date,
            }

        def _call() -> Result[ApiListEnvelope[R]]:
            payload = self._api.get(self._spec.endpoints.download, params=params)
            envelope = decode_list_envelope(payload, self._codec)
            if not envelope.is_success:
                return Result.fail(
                    Failure.server(envelope.message, table=self.TABLE, **context)
                )
            return Result.ok(envelope)

        return self._remote(
            _call, operation_name=f"sync_from_api ({self.TABLE})", **context,
        )

    def create_remote(self, record: R) -> Result[R]:
        """Create *record* on the server, then cache the server's copy.

        The server assigns the identifier, so the cached row uses the id
        from the response, not the one on *record*.  If the local write
        fails the server record still exists; the failure is reported as a
        database failure and the next sync will bring the record down.  A
        confirmation that carries no identifier is not cached.
        """
        operation = f"create_remote ({self.TABLE})"

        def _call() -> Result[R]:
            payload = self._api.post(self._spec.endpoints.create, json=self._codec.to_wire(record))
            envelope = decode_record_envelope(
                payload, self._codec, member=self._spec.record_member,
            )
            if not envelope.is_success:
                return Result.fail(self._rejected(envelope.message, "create"))
            created = envelope.data
            if created is None:
                return Result.fail(self._unconfirmed("creation"))
            if self._codec.entity_id(created) < 0:
                return Result.fail(self._unconfirmed("creation", detail="an identifier"))
            stored = self.add_one(created)
            if stored.failure is not None:
                self._logger.warning(
                    "%s %d created remotely but not cached: %s",
                    self.name,
                    self._codec.entity_id(created),
                    stored.failure.message,
                    extra=log_context(
                        entity=self.name, record_id=self._codec.entity_id(created),
                    ),
                )
                return Result.fail(stored.failure.with_context(entity=self.name))
            return Result.ok(created)

        return self._remote(_call, operation_name=operation, entity=self.name)

    def update_remote(self, record: R) -> Result[R]:
        """Send *record* to the server and cache the merged response.

        The server may answer with only the fields it changed.  Each field
        it leaves out (or sends as ``null``) keeps the value the cache held
        before the update.
        """
        entity_id = self._codec.entity_id(record)
        if entity_id < 0:
            return Result.fail(
                Failure.validation(
                    f"Cannot update a {self.name} without an identifier",
                    entity=self.name,
                )
            )

        existing = self.get_by_id(entity_id)
        if existing.failure is not None:
            return Result.fail(existing.failure.with_context(entity=self.name))
        base: R = existing.data if existing.data is not None else record

        def _call() -> Result[R]:
            payload = self._api.post(self._spec.endpoints.update, json=self._codec.to_wire(record))
            envelope = decode_record_envelope(
                payload, self._codec, existing=base, member=self._spec.record_member,
            )
            if not envelope.is_success:
                return Result.fail(self._rejected(envelope.message, "update", entity_id))
            if envelope.data is None:
                return Result.fail(self._unconfirmed("update", entity_id))
            return self._store_updated(envelope.data)

        return self._remote(
            _call,
            operation_name=f"update_remote ({self.TABLE})",
            entity=self.name,
            record_id=entity_id,
        )

    def update_flag_remote(self, entity_id: int, flag: int) -> Result[R]:
        """Activate (1) or deactivate (0) a record on the server, then locally."""
        existing = self.get_by_id(entity_id)
        if existing.failure is not None:
            return Result.fail(existing.failure.with_context(entity=self.name))

        def _call() -> Result[R]:
            payload = self._api.post(
                self._spec.endpoints.flag, json={"id": entity_id, "flag": flag},
            )
            envelope = decode_record_envelope(
                payload, self._codec, existing=existing.data, member=self._spec.record_member,
            )
            if not envelope.is_success:
                return Result.fail(self._rejected(envelope.message, "update flag of", entity_id))
            confirmed = envelope.data if envelope.data is not None else existing.data
            if confirmed is None:
                return Result.fail(self._unconfirmed("flag update", entity_id))
            flagged = self.update_flag_local(entity_id, flag)
            if flagged.failure is not None:
                return Result.fail(flagged.failure.with_context(entity=self.name))
            return Result.ok(confirmed.model_copy(update={"flag": flag}))

        return self._remote(
            _call,
            operation_name=f"update_flag_remote ({self.TABLE})",
            entity=self.name,
            record_id=entity_id,
        )

    def _rejected(self, message: str, verb: str, entity_id: Optional[int] = None) -> Failure:
        return Failure.server(
            message or f"Failed to {verb} {self.name}",
            table=self.TABLE,
            entity=self.name,
            record_id=entity_id,
        )

    def _unconfirmed(
        self, action: str, entity_id: Optional[int] = None, detail: str = "the record",
    ) -> Failure:
        return Failure.unknown(
            f"Server confirmed {self.name} {action} without returning {detail}",
            table=self.TABLE,
            entity=self.name,
            record_id=entity_id,
        )

    def _store_updated(self, record: R) -> Result[R]:
        """Write a server-confirmed update to the cache.

        A record that is not cached yet is inserted instead.
        """
        stored = self.update_local(record)
        if stored.failure is not None:
            return Result.fail(stored.failure.with_context(entity=self.name))
        if stored.data == 0:
            added = self.add_one(record)
            if added.failure is not None:
                return Result.fail(added.failure.with_context(entity=self.name))
        return Result.ok(record)
