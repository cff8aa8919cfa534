"""Application configuration via Pydantic Settings.

All configuration is driven by environment variables prefixed with
``BLOCKSAFE_`` (e.g. ``BLOCKSAFE_FORMATS_PATH``).  Every setting has a
default, so the service starts without any environment configured; invalid
values raise a ``ValidationError`` at startup.

Usage::

    from blocksafe.config import get_settings

    settings = get_settings()
    print(settings.formats_path)

The ``get_settings`` function is cached with ``functools.lru_cache``. To
override settings in tests, set the relevant environment variables and call
``get_settings.cache_clear()``.
"""
from __future__ import annotations

import functools
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blocksafe.core.byte_stream import DEFAULT_READ_CHUNK_SIZE, DEFAULT_WRITE_CHUNK_SIZE
from blocksafe.core.format_spec import DEFAULT_MAX_BLOCK_LENGTH


class Settings(BaseSettings):
    """BlockSafe application settings.

    Environment variables are read case-insensitively. A ``.env`` file in the
    working directory is loaded automatically when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOCKSAFE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Formats
    formats_path: str = Field(
        default="config/formats.yaml",
        description="Path to the YAML file declaring the supported formats",
    )
    default_max_block_length: int = Field(
        default=DEFAULT_MAX_BLOCK_LENGTH,
        ge=1,
        description="Largest candidate block accumulated before it is declared invalid",
    )

    # Streaming
    read_chunk_size: int = Field(
        default=DEFAULT_READ_CHUNK_SIZE,
        ge=1,
        description="Bytes requested from the upload per read",
    )
    write_chunk_size: int = Field(
        default=DEFAULT_WRITE_CHUNK_SIZE,
        ge=1,
        description="Sanitized bytes buffered before each write",
    )

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment: development, staging, or production",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (never set True in production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    The first call reads environment variables (and ``.env``). Subsequent calls
    return the cached instance. Clear the cache with ``get_settings.cache_clear()``
    between tests.
    """
    return Settings()
