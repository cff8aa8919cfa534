"""Loader for the ``formats.yaml`` format-definition file.

:func:`load_format_definitions` reads the YAML file named by the
``formats_path`` setting and returns validated
:class:`~blocksafe.schemas.format.FormatDefinition` objects in file order.

Failure policy:

* Missing file — not an error.  A warning is logged and an empty list is
  returned, so the service starts with no supported formats.
* Unreadable file, invalid YAML, or a document that is not a mapping with a
  ``formats`` list — :class:`FormatConfigError`.  The service refuses to
  start with a broken configuration.
* A single malformed entry — skipped with a warning; the remaining entries
  are still loaded.

Regular expressions are **not** compiled here.  They are compiled when an
engine is constructed, where a bad pattern surfaces as
:class:`~blocksafe.core.engine.EngineConfigurationError`.

Usage::

    from blocksafe.core.format_loader import load_format_definitions

    definitions = load_format_definitions("config/formats.yaml")
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from blocksafe.schemas.format import FormatDefinition

logger = logging.getLogger(__name__)


class FormatConfigError(Exception):
    """Raised when ``formats.yaml`` exists but cannot be used."""


def load_format_definitions(path: str | Path) -> list[FormatDefinition]:
    """Return the format definitions declared in the YAML file at *path*.

    Args:
        path: Location of ``formats.yaml``.  ``~`` is expanded.

    Returns:
        Valid definitions in file order.  Empty when the file is missing,
        empty, or declares no formats.

    Raises:
        FormatConfigError: If the file cannot be read or parsed, or its top
            level is not a mapping with a ``formats`` list.
    """
    config_path = Path(path).expanduser()

    if not config_path.is_file():
        logger.warning(
            "Format config not found: %s — no formats will be supported", config_path
        )
        return []

    try:
        with config_path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise FormatConfigError(f"Failed to parse {config_path}: {exc}") from exc
    except OSError as exc:
        raise FormatConfigError(f"Could not read {config_path}: {exc}") from exc

    if raw is None:
        logger.warning("Format config %s is empty — no formats loaded", config_path)
        return []

    if not isinstance(raw, dict):
        raise FormatConfigError(
            f"{config_path} must contain a YAML mapping at the top level "
            f"(got {type(raw).__name__})"
        )

    entries = raw.get("formats") or []
    if not isinstance(entries, list):
        raise FormatConfigError(
            f"'formats' in {config_path} must be a list (got {type(entries).__name__})"
        )

    definitions: list[FormatDefinition] = []
    for index, entry in enumerate(entries):
        try:
            definitions.append(FormatDefinition.model_validate(entry))
        except ValidationError as exc:
            logger.warning(
                "Format entry at index %d in %s is invalid — skipping: %s",
                index,
                config_path,
                exc,
            )

    logger.info(
        "Loaded %d format definition(s) from %s", len(definitions), config_path
    )
    return definitions
