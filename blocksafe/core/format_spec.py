"""FormatSpec — the immutable rule set for one supported file format.

A :class:`FormatSpec` is what the sanitizing engines consume.  It is built
once from a :class:`~blocksafe.schemas.format.FormatDefinition` loaded from
``formats.yaml`` and lives for the lifetime of the configuration.  Engines
never mutate it, so one instance can back any number of concurrent runs.

Byte fields (``prefix``, ``suffix``, ``replacement``) are compared and
emitted verbatim; no encoding conversion or case folding is applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

#: Accumulation bound used when a format does not declare its own.
DEFAULT_MAX_BLOCK_LENGTH = 4096


class ProcessorType(str, Enum):
    """Processing strategy selected per format."""

    GENERIC = "generic"
    FIXED = "fixed"

    @classmethod
    def parse(cls, value: str | None) -> "ProcessorType | None":
        """Return the strategy named by *value*, or ``None`` if unrecognised.

        Matching is case-insensitive and accepts the legacy
        ``"genericfileprocessor"`` spelling.  A blank value means generic.
        """
        if value is None or not value.strip():
            return cls.GENERIC
        normalised = value.strip().lower()
        if normalised in ("generic", "genericfileprocessor"):
            return cls.GENERIC
        if normalised in ("fixed", "fixedblock", "fixedblockprocessor"):
            return cls.FIXED
        return None


@dataclass(frozen=True)
class FormatSpec:
    """Declarative validation and sanitization rules for one format.

    Attributes:
        format_id: Identifier of the format (used in logs, spans and metrics).
        prefix: Exact bytes required before the body.  May be empty.
        suffix: Exact bytes required after the body.  May be empty.
        block_pattern: Regular expression that a whole block must match.
            Empty means any non-empty candidate is a valid block.
        replacement: Bytes emitted in place of an invalid block.  Need not be
            the same length as the block it replaces.
        max_block_length: Largest number of bytes accumulated for one
            candidate block before it is declared invalid.
        processor_type: Which engine strategy handles this format.
        block_length: Exact block size for the fixed strategy.
        block_shape: Optional structural pattern a fixed-length block must
            match before its validity is tested.
        notes: Free-form description appended to report notes.
    """

    format_id: str
    prefix: bytes = b""
    suffix: bytes = b""
    block_pattern: str = ""
    replacement: bytes = b""
    max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH
    processor_type: ProcessorType = ProcessorType.GENERIC
    block_length: int = 0
    block_shape: str | None = None
    notes: str | None = None

    @property
    def prefix_text(self) -> str:
        """Prefix rendered for error messages."""
        return _printable(self.prefix)

    @property
    def suffix_text(self) -> str:
        return _printable(self.suffix)


def _printable(data: bytes) -> str:
    return data.decode("ascii", errors="backslashreplace")
