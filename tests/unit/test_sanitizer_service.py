"""Unit tests for blocksafe/services/sanitizer.py.

Coverage targets:
* Clean, sanitized and rejected files produce the matching outcome.
* Unsupported and extension-less files raise ``UnsupportedFormatError``.
* Misconfigured formats propagate ``ProcessorCreationError``.
* Prometheus counters are incremented per outcome.
"""

from __future__ import annotations

import io

import pytest

from blocksafe.core.detector import FileFormatDetector
from blocksafe.core.registry import ProcessorCreationError, ProcessorRegistry
from blocksafe.core.results import ProcessingErrorCode
from blocksafe.schemas.format import FormatDefinition
from blocksafe.services.sanitizer import (
    SanitizationService,
    UnsupportedFormatError,
    blocks_replaced_total,
    files_processed_total,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


_DEFINITIONS = [
    FormatDefinition.model_validate(
        {
            "id": "svc-abc",
            "extension": ".abc",
            "spec": {
                "prefix": "123",
                "suffix": "789",
                "validBlockRegex": "A[1-9]C",
                "errorBlockReplacement": "A255C",
            },
        }
    ),
    FormatDefinition.model_validate(
        {"id": "svc-bad", "extension": ".bad", "spec": {"validBlockRegex": "A["}}
    ),
]


@pytest.fixture
def service() -> SanitizationService:
    return SanitizationService(
        FileFormatDetector(_DEFINITIONS), ProcessorRegistry(_DEFINITIONS)
    )


def _processed(format_id: str, outcome: str) -> float:
    return files_processed_total.labels(format=format_id, outcome=outcome)._value.get()


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class TestSanitize:
    @pytest.mark.asyncio
    async def test_clean_file(self, service: SanitizationService) -> None:
        before = _processed("svc-abc", "clean")
        out = io.BytesIO()

        outcome = await service.sanitize("ok.abc", io.BytesIO(b"123A1C789"), out)

        assert outcome.result.success is True
        assert outcome.detected.format_id == "svc-abc"
        assert out.getvalue() == b"123A1C789"
        assert _processed("svc-abc", "clean") == before + 1

    @pytest.mark.asyncio
    async def test_sanitized_file(self, service: SanitizationService) -> None:
        before = _processed("svc-abc", "sanitized")
        replaced_before = blocks_replaced_total.labels(format="svc-abc")._value.get()
        out = io.BytesIO()

        outcome = await service.sanitize("x.ABC", io.BytesIO(b"123A?C789"), out)

        assert outcome.result.report.replaced_blocks == 1
        assert out.getvalue() == b"123A255C789"
        assert _processed("svc-abc", "sanitized") == before + 1
        assert blocks_replaced_total.labels(format="svc-abc")._value.get() == replaced_before + 1

    @pytest.mark.asyncio
    async def test_rejected_file(self, service: SanitizationService) -> None:
        before = _processed("svc-abc", "rejected")

        outcome = await service.sanitize("x.abc", io.BytesIO(b""), io.BytesIO())

        assert outcome.result.success is False
        assert outcome.result.error.code is ProcessingErrorCode.EMPTY_FILE
        assert _processed("svc-abc", "rejected") == before + 1


class TestSanitizeErrors:
    @pytest.mark.asyncio
    async def test_unsupported_extension(self, service: SanitizationService) -> None:
        with pytest.raises(UnsupportedFormatError) as exc_info:
            await service.sanitize("notes.txt", io.BytesIO(b"123"), io.BytesIO())

        assert exc_info.value.extension == ".txt"
        assert str(exc_info.value) == "Extension '.txt' is not supported."

    @pytest.mark.asyncio
    async def test_missing_extension(self, service: SanitizationService) -> None:
        with pytest.raises(UnsupportedFormatError, match=r"'\(none\)'"):
            await service.sanitize("README", io.BytesIO(b"123"), io.BytesIO())

    @pytest.mark.asyncio
    async def test_misconfigured_format(self, service: SanitizationService) -> None:
        with pytest.raises(ProcessorCreationError):
            await service.sanitize("x.bad", io.BytesIO(b"123"), io.BytesIO())
