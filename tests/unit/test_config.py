"""Unit tests for blocksafe/config.py."""

from __future__ import annotations

import pydantic
import pytest

from blocksafe.config import Settings, get_settings
from blocksafe.core.format_spec import DEFAULT_MAX_BLOCK_LENGTH


class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("BLOCKSAFE_FORMATS_PATH", raising=False)
        settings = Settings(_env_file=None)

        assert settings.formats_path == "config/formats.yaml"
        assert settings.default_max_block_length == DEFAULT_MAX_BLOCK_LENGTH
        assert settings.read_chunk_size == 64 * 1024
        assert settings.debug is False
        assert settings.log_level == "INFO"

    def test_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("BLOCKSAFE_FORMATS_PATH", "/etc/blocksafe/formats.yaml")
        monkeypatch.setenv("BLOCKSAFE_DEFAULT_MAX_BLOCK_LENGTH", "128")

        settings = Settings(_env_file=None)

        assert settings.formats_path == "/etc/blocksafe/formats.yaml"
        assert settings.default_max_block_length == 128

    def test_log_level_is_normalised(self, monkeypatch) -> None:
        monkeypatch.setenv("BLOCKSAFE_LOG_LEVEL", "debug")
        assert Settings(_env_file=None).log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("BLOCKSAFE_LOG_LEVEL", "chatty")
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None)

    @pytest.mark.parametrize(
        "name", ["BLOCKSAFE_DEFAULT_MAX_BLOCK_LENGTH", "BLOCKSAFE_READ_CHUNK_SIZE"]
    )
    def test_non_positive_sizes_rejected(self, monkeypatch, name: str) -> None:
        monkeypatch.setenv(name, "0")
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None)


class TestGetSettings:
    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_environment(self, monkeypatch) -> None:
        first = get_settings()
        monkeypatch.setenv("BLOCKSAFE_ENVIRONMENT", "staging")
        get_settings.cache_clear()

        second = get_settings()

        assert second is not first
        assert second.environment == "staging"
