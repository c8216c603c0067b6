"""Tests for environment-driven configuration."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from retailsync.config import AppConfig, get_config, reset_config


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run each test away from any real .env file."""
    monkeypatch.chdir(tmp_path)


class TestAppConfig:

    def test_defaults(self):
        config = AppConfig(_env_file=None)
        assert config.API_BASE_URL == ""
        assert not config.is_remote_configured
        assert config.SYNC_BATCH_LIMIT == 500
        assert config.SYNC_USER_TYPE == 1
        assert config.sqlite_path == Path("retailsync_local.db")
        assert config.API_TOKEN.get_secret_value() == ""

    def test_base_url_gets_trailing_slash(self):
        config = AppConfig(_env_file=None, API_BASE_URL=" https://shop.test/schedule/mobileApp ")
        assert config.API_BASE_URL == "https://shop.test/schedule/mobileApp/"
        assert config.is_remote_configured

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SYNC_BATCH_LIMIT", "50")
        monkeypatch.setenv("SYNC_USER_TYPE", "4")
        monkeypatch.setenv("API_TOKEN", "s3cret")
        config = AppConfig(_env_file=None)
        assert config.SYNC_BATCH_LIMIT == 50
        assert config.SYNC_USER_TYPE == 4
        assert config.API_TOKEN.get_secret_value() == "s3cret"
        assert "s3cret" not in repr(config)

    def test_unrelated_host_variables_are_ignored(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("USER_TYPE", "ant")
        monkeypatch.setenv("USER_ID", "someone")
        config = AppConfig(_env_file=None)
        assert config.SYNC_USER_TYPE == 1
        assert config.SYNC_USER_ID == -1

    def test_env_file_is_read(self, tmp_path: Path):
        (tmp_path / ".env").write_text("API_BASE_URL=https://from.file\nSYNC_USER_ID=12\n")
        config = AppConfig()
        assert config.API_BASE_URL == "https://from.file/"
        assert config.SYNC_USER_ID == 12

    def test_batch_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            AppConfig(_env_file=None, SYNC_BATCH_LIMIT=0)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(_env_file=None, API_MAX_RETRIES=-1)


class TestSingleton:

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_rereads_environment(self, monkeypatch: pytest.MonkeyPatch):
        first = get_config()
        monkeypatch.setenv("SYNC_USER_ID", "99")
        assert get_config().SYNC_USER_ID == first.SYNC_USER_ID

        reset_config()

        assert get_config().SYNC_USER_ID == 99
