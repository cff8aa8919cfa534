"""File format detection by extension.

:class:`FileFormatDetector` maps an uploaded file name to one of the
configured formats.  Detection is by extension only: the last suffix of the
base name, compared case-insensitively with a leading dot
(``"MyFile.Benign.ABC"`` → ``".abc"``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable

from blocksafe.schemas.format import FormatDefinition

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def normalize_extension(extension: str) -> str:
    """Return *extension* lower-cased with exactly one leading dot."""
    ext = extension.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def extension_of(filename: str) -> str:
    """Return the normalised extension of *filename*, or ``""`` if it has none.

    Both ``/`` and ``\\`` are treated as path separators, since client
    file names may come from any platform.  A bare dot-file name such as
    ``".abc"`` is its own extension.
    """
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    _, ext = os.path.splitext(base)
    if not ext and base.startswith(".") and base.count(".") == 1:
        ext = base
    return normalize_extension(ext) if len(ext) > 1 else ""


@dataclass(frozen=True)
class DetectedFile:
    """Result of format detection for one file.

    Attributes:
        is_known: ``True`` when the extension matches a configured format.
        extension: Normalised extension (e.g. ``".abc"``), or ``None`` when
            the file name has none.
        format_id: Identifier of the matched format.
        content_type: Content type to report for the sanitized output.
    """

    is_known: bool
    extension: str | None
    format_id: str | None = None
    content_type: str = DEFAULT_CONTENT_TYPE


class FileFormatDetector:
    """Extension-based detector over a fixed set of format definitions."""

    def __init__(self, definitions: Iterable[FormatDefinition]) -> None:
        self._by_extension: dict[str, FormatDefinition] = {}
        for definition in definitions:
            if not definition.extension:
                continue
            ext = normalize_extension(definition.extension)
            self._by_extension.setdefault(ext, definition)

    def detect(self, filename: str) -> DetectedFile:
        ext = extension_of(filename)
        definition = self._by_extension.get(ext) if ext else None
        if definition is None:
            logger.debug("No format configured for %r (extension=%r)", filename, ext)
            return DetectedFile(is_known=False, extension=ext or None)

        return DetectedFile(
            is_known=True,
            extension=ext,
            format_id=definition.id,
            content_type=definition.content_type or DEFAULT_CONTENT_TYPE,
        )
