"""SanitizationService — detect, resolve and process one uploaded file.

:class:`SanitizationService` is the seam between the HTTP layer and the core
engines.  For each upload it:

1. detects the format from the file name
   (:class:`~blocksafe.core.detector.FileFormatDetector`);
2. asks the :class:`~blocksafe.core.registry.ProcessorRegistry` for a fresh
   engine bound to that format;
3. runs the engine from the upload stream into the caller's sink;
4. records the outcome in Prometheus counters.

Unsupported files raise :class:`UnsupportedFormatError`; misconfigured
formats propagate :class:`~blocksafe.core.registry.ProcessorCreationError`.
Rejected input is *not* an exception: it comes back as a
:class:`SanitizationOutcome` whose ``result.success`` is ``False``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from prometheus_client import Counter

from blocksafe.core.detector import DetectedFile, FileFormatDetector, extension_of
from blocksafe.core.registry import ProcessorRegistry
from blocksafe.core.results import ProcessResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

#: Files run through an engine.  Labels: ``format`` and ``outcome``
#: ("clean" | "sanitized" | "rejected").
files_processed_total = Counter(
    "blocksafe_files_processed_total",
    "Total number of files processed by a sanitizing engine",
    ["format", "outcome"],
)

#: Invalid blocks replaced across all successfully processed files.
blocks_replaced_total = Counter(
    "blocksafe_blocks_replaced_total",
    "Total number of invalid blocks replaced",
    ["format"],
)


class UnsupportedFormatError(Exception):
    """Raised when no configured format matches an uploaded file.

    Attributes:
        extension: Extension of the rejected file (``""`` when it has none).
    """

    def __init__(self, extension: str) -> None:
        shown = extension or "(none)"
        super().__init__(f"Extension '{shown}' is not supported.")
        self.extension = extension


@dataclass(frozen=True)
class SanitizationOutcome:
    """Detection result paired with the engine result for one file."""

    detected: DetectedFile
    result: ProcessResult


class SanitizationService:
    """Stateless orchestration over a detector and a registry.

    Safe to share between concurrent requests: every call resolves its own
    engine.
    """

    def __init__(self, detector: FileFormatDetector, registry: ProcessorRegistry) -> None:
        self._detector = detector
        self._registry = registry

    async def sanitize(
        self,
        filename: str,
        source: Any,
        sink: Any,
        cancellation: asyncio.Event | None = None,
    ) -> SanitizationOutcome:
        """Sanitize *source* into *sink* using the format matching *filename*.

        Raises:
            UnsupportedFormatError: If no format is configured for the file.
            ProcessorCreationError: If the matching format is misconfigured.
        """
        detected = self._detector.detect(filename)
        if not detected.is_known:
            raise UnsupportedFormatError(extension_of(filename))

        engine = self._registry.resolve(detected)
        if engine is None:
            raise UnsupportedFormatError(detected.extension or "")

        result = await engine.process(source, sink, cancellation)
        self._record(engine.format_id, result)
        return SanitizationOutcome(detected=detected, result=result)

    @staticmethod
    def _record(format_id: str, result: ProcessResult) -> None:
        report = result.report
        if report is None:
            files_processed_total.labels(format=format_id, outcome="rejected").inc()
            return

        if report.was_malicious:
            files_processed_total.labels(format=format_id, outcome="sanitized").inc()
            blocks_replaced_total.labels(format=format_id).inc(report.replaced_blocks)
            logger.warning(
                "Sanitized %d invalid block(s) in %s upload",
                report.replaced_blocks,
                format_id,
            )
        else:
            files_processed_total.labels(format=format_id, outcome="clean").inc()
