"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference and the SQLite connection
- Logger reference
- Guarded execution helpers that turn exceptions into ``Result`` failures,
  so public repository operations never raise
"""

from __future__ import annotations

import sqlite3
from typing import Callable, TypeVar

from retailsync.api_client import HttpStatusError, NetworkError
from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger, log_context
from retailsync.models.results import ContextValue, Failure, Result

T = TypeVar("T")


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def table(self) -> str:
        return self.TABLE

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the SQLite connection for local cache operations."""
        return self._db.sqlite

    def _commit(self) -> None:
        """Commit the SQLite transaction unless a batch is active.

        Inside :meth:`DatabaseManager.batch_write` this is a no-op and the
        batch issues a single commit (or rollback) when the block exits.
        """
        if not self._db.in_batch:
            self.sqlite.commit()

    def _log_context(
        self, operation_name: str, context: dict[str, ContextValue],
    ) -> dict[str, str]:
        return log_context(operation=operation_name, table=self.TABLE, **context)

    def _read(
        self,
        op: Callable[[], T],
        *,
        operation_name: str,
        **context: ContextValue,
    ) -> Result[T]:
        """Run a SELECT-only callable and wrap its outcome."""
        try:
            return Result.ok(op())
        except sqlite3.Error as exc:
            self._logger.error(
                "SQLite read failed for %s: %s", operation_name, exc,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(Failure.database(exc, table=self.TABLE, **context))
        except Exception as exc:
            self._logger.exception(
                "Unexpected error in %s", operation_name,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(
                Failure.unknown(
                    f"Unexpected error in {operation_name}: {exc}",
                    exc,
                    table=self.TABLE,
                    **context,
                )
            )

    def _write(
        self,
        op: Callable[[], T],
        *,
        operation_name: str,
        **context: ContextValue,
    ) -> Result[T]:
        """Run a mutating callable as one transaction and wrap its outcome.

        Joins the caller's transaction when a batch is already active.  A
        failure is then returned, not raised, and the caller must raise to
        roll the outer batch back.
        """
        try:
            with self._db.batch_write():
                value = op()
            return Result.ok(value)
        except sqlite3.Error as exc:
            self._logger.error(
                "SQLite write failed for %s: %s", operation_name, exc,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(Failure.database(exc, table=self.TABLE, **context))
        except Exception as exc:
            self._logger.exception(
                "Unexpected error in %s", operation_name,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(
                Failure.unknown(
                    f"Unexpected error in {operation_name}: {exc}",
                    exc,
                    table=self.TABLE,
                    **context,
                )
            )

    def _remote(
        self,
        op: Callable[[], Result[T]],
        *,
        operation_name: str,
        **context: ContextValue,
    ) -> Result[T]:
        """Run a remote call and classify transport and HTTP errors."""
        try:
            return op()
        except NetworkError as exc:
            self._logger.warning(
                "%s: network failure (%s)", operation_name, exc.reason,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(Failure.network(exc.message, exc, table=self.TABLE, **context))
        except HttpStatusError as exc:
            return Result.fail(
                Failure.server(str(exc), exc.code, exc, table=self.TABLE, **context)
            )
        except Exception as exc:
            self._logger.exception(
                "Unexpected error in %s", operation_name,
                extra=self._log_context(operation_name, context),
            )
            return Result.fail(
                Failure.unknown(
                    f"Unexpected error in {operation_name}: {exc}",
                    exc,
                    table=self.TABLE,
                    **context,
                )
            )
