"""
Structured JSON Logging Module.

Every component gets a named logger that writes one JSON object per line
to the console and to a rotating file, so sync runs leave a machine-readable
trail of pages applied, records skipped and failures reported.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: ``timestamp`` (UTC ISO-8601), ``level``, ``logger_name``,
    ``message``, plus ``extra`` for caller context such as ``entity`` or
    ``part_no`` and ``exception`` when a traceback is attached.
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Union[str, dict[str, str]]] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        # Only caller-supplied context lands under "extra".
        extra_fields: dict[str, str] = {
            key: str(value)
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


def log_context(**context: object) -> dict[str, str]:
    """``extra`` mapping for a log call; ``None`` values are left out.

    Repositories and the orchestrator pass the same ``entity``, ``table``,
    ``part_no`` and ``record_id`` they attach to failures, so a failure in
    a result can be matched to its log line.
    """
    return {key: str(value) for key, value in context.items() if value is not None}


class StructuredLogger:
    """Named JSON logger handed to repositories and services at construction.

    Handlers are attached once per logger name; later instances with the
    same name share them.  Unset file options fall back to ``LOG_FILE``,
    ``LOG_MAX_BYTES`` and ``LOG_BACKUP_COUNT`` from the config.

    Usage::

        log = StructuredLogger(name="retailsync.sync")
        log.info("Page applied", extra=log_context(entity="Customer", part_no=3))
    """

    _DEFAULT_LOG_FILE: str = "retailsync.log"

    def __init__(
        self,
        name: str = "retailsync",
        level: int = logging.INFO,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)

        # Already configured under this name.
        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        stream_handler = logging.StreamHandler(stream or sys.stdout)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        self._logger.addHandler(stream_handler)

        if log_file is None or max_bytes is None or backup_count is None:
            # Config is read only when a file option is left unset.
            from retailsync.config import get_config
            cfg = get_config()
            log_file = log_file or cfg.LOG_FILE
            max_bytes = max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES
            backup_count = backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT

        self._attach_file_handler(
            log_file or self._DEFAULT_LOG_FILE, max_bytes, backup_count, level, formatter,
        )

    def _attach_file_handler(
        self,
        log_file: str,
        max_bytes: int,
        backup_count: int,
        level: int,
        formatter: logging.Formatter,
    ) -> None:
        """Add the rotating sync log; an unwritable path leaves console only."""
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Sync log %s is not writable (%s); logging to the console only.",
                path,
                exc,
                extra=log_context(log_file=log_file),
            )
            return
        handler.setLevel(level)
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying ``logging.Logger`` directly."""
        return self._logger

    # -- Convenience delegates ------------------------------------------------

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.exception(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "retailsync") -> StructuredLogger:
    """Create and return a ``StructuredLogger`` instance with the given *name*."""
    return StructuredLogger(name=name)
