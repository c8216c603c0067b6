"""Tests for the JSON log format."""
from __future__ import annotations

import io
import json
from pathlib import Path

from retailsync.logger import StructuredLogger, log_context


def _logger(tmp_path: Path, name: str) -> tuple[StructuredLogger, io.StringIO]:
    stream = io.StringIO()
    log = StructuredLogger(
        name=f"retailsync.test.logger.{name}",
        stream=stream,
        log_file=str(tmp_path / "logs" / "sync.log"),
        max_bytes=10_000,
        backup_count=1,
    )
    return log, stream


class TestStructuredLogger:

    def test_emits_one_json_object_per_line(self, tmp_path: Path):
        log, stream = _logger(tmp_path, "plain")
        log.info("Page %d applied", 3, extra={"entity": "Customer"})

        entry = json.loads(stream.getvalue().splitlines()[-1])
        assert entry["level"] == "INFO"
        assert entry["message"] == "Page 3 applied"
        assert entry["logger_name"].endswith(".plain")
        assert entry["extra"] == {"entity": "Customer"}

    def test_exception_traceback_is_included(self, tmp_path: Path):
        log, stream = _logger(tmp_path, "exc")
        try:
            raise ValueError("bad page")
        except ValueError:
            log.exception("Unexpected error")

        entry = json.loads(stream.getvalue().splitlines()[-1])
        assert entry["level"] == "ERROR"
        assert "ValueError: bad page" in entry["exception"]

    def test_writes_log_file(self, tmp_path: Path):
        log, _ = _logger(tmp_path, "file")
        log.warning("written")
        for handler in log.logger.handlers:
            handler.flush()
        assert "written" in (tmp_path / "logs" / "sync.log").read_text(encoding="utf-8")

    def test_same_name_reuses_handlers(self, tmp_path: Path):
        first, _ = _logger(tmp_path, "dup")
        handlers = len(first.logger.handlers)
        _logger(tmp_path, "dup")
        assert len(first.logger.handlers) == handlers

    def test_unwritable_log_file_falls_back_to_console(self, tmp_path: Path):
        (tmp_path / "blocker").write_text("not a directory")
        stream = io.StringIO()
        log = StructuredLogger(
            name="retailsync.test.logger.unwritable",
            stream=stream,
            log_file=str(tmp_path / "blocker" / "sync.log"),
            max_bytes=10_000,
            backup_count=1,
        )

        assert len(log.logger.handlers) == 1
        entry = json.loads(stream.getvalue().splitlines()[-1])
        assert entry["level"] == "WARNING"
        assert entry["extra"]["log_file"].endswith("sync.log")


class TestLogContext:

    def test_values_are_text_and_none_is_dropped(self):
        assert log_context(entity="Product", part_no=3, record_id=None) == {
            "entity": "Product",
            "part_no": "3",
        }
