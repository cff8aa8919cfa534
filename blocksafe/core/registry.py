"""ProcessorRegistry — extension → format lookup and engine construction.

The registry is built once at startup from the loaded format definitions and
shared by every request.  It never hands out a shared engine: each call to
:meth:`ProcessorRegistry.resolve` constructs a new engine bound to the
format's :class:`~blocksafe.core.format_spec.FormatSpec`, so no run can
observe another run's state.

The engine class is chosen from the format's ``processorType``:

* ``generic`` (default, also ``genericfileprocessor``) —
  :class:`~blocksafe.core.engine.SanitizingEngine`
* ``fixed`` — :class:`~blocksafe.core.engine.FixedBlockEngine`

Unknown processor types fall back to ``generic`` with a warning.

If engine construction fails because the format is misconfigured, the
internal detail is logged and a generic :class:`ProcessorCreationError` is
raised so nothing about the configuration leaks to clients.
"""

from __future__ import annotations

import logging
from typing import Iterable

from blocksafe.core.byte_stream import DEFAULT_READ_CHUNK_SIZE, DEFAULT_WRITE_CHUNK_SIZE
from blocksafe.core.detector import DetectedFile, normalize_extension
from blocksafe.core.engine import EngineConfigurationError, FixedBlockEngine, SanitizingEngine
from blocksafe.core.format_spec import DEFAULT_MAX_BLOCK_LENGTH, ProcessorType
from blocksafe.schemas.format import FormatDefinition

logger = logging.getLogger(__name__)

_ENGINES: dict[ProcessorType, type[SanitizingEngine]] = {
    ProcessorType.GENERIC: SanitizingEngine,
    ProcessorType.FIXED: FixedBlockEngine,
}


class ProcessorCreationError(Exception):
    """Raised when an engine cannot be created for a resolved format."""

    def __init__(self) -> None:
        super().__init__("Failed to create processor for the requested format.")


class ProcessorRegistry:
    """Application-wide map of configured formats, keyed by extension.

    Args:
        definitions: Loaded format definitions.  Entries without an
            extension are ignored; for duplicate extensions the first entry
            wins.
        default_max_block_length: Accumulation bound for formats that do not
            set ``maxBlockLength``.
        read_chunk_size: Passed to every engine.
        write_chunk_size: Passed to every engine.
    """

    def __init__(
        self,
        definitions: Iterable[FormatDefinition],
        *,
        default_max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        write_chunk_size: int = DEFAULT_WRITE_CHUNK_SIZE,
    ) -> None:
        self._default_max_block_length = default_max_block_length
        self._read_chunk_size = read_chunk_size
        self._write_chunk_size = write_chunk_size
        self._by_extension: dict[str, FormatDefinition] = {}

        for definition in definitions:
            if not definition.extension:
                continue
            ext = normalize_extension(definition.extension)
            if ext in self._by_extension:
                logger.warning(
                    "Duplicate format for extension %s: keeping %s, ignoring %s",
                    ext,
                    self._by_extension[ext].id,
                    definition.id,
                )
                continue
            self._by_extension[ext] = definition

        logger.info("ProcessorRegistry initialised with %d entries", len(self._by_extension))

    def __len__(self) -> int:
        return len(self._by_extension)

    def resolve(self, detected: DetectedFile) -> SanitizingEngine | None:
        """Return a new engine for *detected*, or ``None`` if unsupported.

        Raises:
            ProcessorCreationError: If the matching format is misconfigured.
        """
        if not detected.is_known or not detected.extension:
            logger.warning(
                "resolve called with unknown or missing extension: is_known=%s extension=%s",
                detected.is_known,
                detected.extension,
            )
            return None

        ext = normalize_extension(detected.extension)
        definition = self._by_extension.get(ext)
        if definition is None:
            logger.debug("No format definition found for extension %s", ext)
            return None

        logger.info("Creating processor for extension %s", ext)
        try:
            return self._build(definition)
        except EngineConfigurationError as exc:
            logger.error(
                "Error creating processor for extension %s: %s", ext, exc, exc_info=True
            )
            raise ProcessorCreationError() from exc

    def validate(self) -> list[str]:
        """Build one engine per format and return the ids that failed.

        Called at startup so misconfigured formats show up in the logs
        before the first upload for them arrives.
        """
        failed: list[str] = []
        for ext, definition in self._by_extension.items():
            try:
                self._build(definition)
            except EngineConfigurationError as exc:
                logger.error("Format %s (%s) is misconfigured: %s", definition.id, ext, exc)
                failed.append(definition.id)
        return failed

    def _build(self, definition: FormatDefinition) -> SanitizingEngine:
        if ProcessorType.parse(definition.spec.processor_type) is None:
            logger.warning(
                "Unknown processor type %r for format %s; falling back to generic",
                definition.spec.processor_type,
                definition.id,
            )

        spec = definition.to_format_spec(self._default_max_block_length)
        engine_cls = _ENGINES[spec.processor_type]
        return engine_cls(
            spec,
            read_chunk_size=self._read_chunk_size,
            write_chunk_size=self._write_chunk_size,
        )
