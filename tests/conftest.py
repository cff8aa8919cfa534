"""Shared pytest configuration and fixtures for BlockSafe tests.

Points ``BLOCKSAFE_FORMATS_PATH`` at the repository's ``config/formats.yaml``
before any blocksafe module is imported, so ``blocksafe.main`` builds its
app from a known configuration regardless of the working directory.
"""
from __future__ import annotations

import io
import os
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parent.parent

# Set env vars before any blocksafe module is imported
os.environ.setdefault("BLOCKSAFE_FORMATS_PATH", str(REPO_ROOT / "config" / "formats.yaml"))
os.environ.setdefault("BLOCKSAFE_ENVIRONMENT", "test")

from blocksafe.config import get_settings  # noqa: E402
from blocksafe.core.format_spec import FormatSpec, ProcessorType  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def abc_spec() -> FormatSpec:
    """The ``.abc`` format: ``123`` header, ``789`` footer, ``A<1-9>C`` blocks."""
    return FormatSpec(
        format_id="abc",
        prefix=b"123",
        suffix=b"789",
        block_pattern=r"A[1-9]C",
        replacement=b"A255C",
    )


@pytest.fixture
def abf_spec() -> FormatSpec:
    """Fixed-size variant of ``.abc`` with three-byte ``A?C`` blocks."""
    return FormatSpec(
        format_id="abf",
        prefix=b"123",
        suffix=b"789",
        block_pattern=r"A[1-9]C",
        replacement=b"A255C",
        processor_type=ProcessorType.FIXED,
        block_length=3,
        block_shape=r"A.C",
    )


async def _run_engine(engine, data: bytes, cancellation=None):
    out = io.BytesIO()
    result = await engine.process(io.BytesIO(data), out, cancellation)
    return result, out.getvalue()


@pytest.fixture
def run_engine():
    """Coroutine function running an engine over bytes; returns ``(result, output)``."""
    return _run_engine
