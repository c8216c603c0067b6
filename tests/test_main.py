"""Tests for the command-line entry point."""
from __future__ import annotations

from pathlib import Path

import pytest

import main


@pytest.fixture(autouse=True)
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("API_BASE_URL", raising=False)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "cache.db"))
    return tmp_path


def test_unconfigured_remote_exits_with_2(workdir: Path):
    assert main.main([]) == 2
    assert (workdir / "cache.db").exists()


def test_full_and_worker_are_exclusive():
    with pytest.raises(SystemExit):
        main.main(["--full", "--worker"])
