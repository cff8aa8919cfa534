"""Pydantic schemas for format definitions read from ``formats.yaml``.

The YAML file uses camelCase keys::

    formats:
      - id: abc
        extension: .abc
        contentType: application/octet-stream
        notes: Blocks are A<digit>C triples.
        spec:
          prefix: "123"
          suffix: "789"
          validBlockRegex: "A[1-9]C"
          errorBlockReplacement: "A255C"
          processorType: generic
          maxBlockLength: 64

Definitions written in the older flat layout (``prefix``, ``suffix``,
``validRegex``, ``replacement``, ``blockLength``, ``blockPattern`` and
``maxBlockLength`` directly on the format entry) are folded into ``spec``
when no ``spec`` mapping is present.

:meth:`FormatDefinition.to_format_spec` turns a definition into the
immutable :class:`~blocksafe.core.format_spec.FormatSpec` consumed by the
engines.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from blocksafe.core.format_spec import DEFAULT_MAX_BLOCK_LENGTH, FormatSpec, ProcessorType

# Flat keys accepted on the format entry itself, mapped to their spec key.
_LEGACY_SPEC_KEYS: dict[str, str] = {
    "prefix": "prefix",
    "suffix": "suffix",
    "validRegex": "validBlockRegex",
    "replacement": "errorBlockReplacement",
    "blockLength": "blockLength",
    "blockPattern": "blockPattern",
    "maxBlockLength": "maxBlockLength",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class FormatSpecDefinition(_CamelModel):
    """Processing parameters of one format.

    Attributes:
        prefix: Required header text.
        suffix: Required footer text.
        valid_block_regex: Full-match grammar for a valid block.
        error_block_replacement: Text written in place of an invalid block.
        processor_type: Strategy name (``generic`` or ``fixed``).
        max_block_length: Accumulation bound; ``0`` means the service default.
        block_length: Block size for the ``fixed`` strategy.
        block_pattern: Structural grammar for ``fixed`` blocks.
    """

    prefix: str = ""
    suffix: str = ""
    valid_block_regex: str = ""
    error_block_replacement: str = ""
    processor_type: str | None = None
    max_block_length: int = Field(default=0, ge=0)
    block_length: int = Field(default=0, ge=0)
    block_pattern: str | None = None


class FormatDefinition(_CamelModel):
    """One supported file format."""

    id: str = Field(..., min_length=1)
    extension: str | None = None
    content_type: str | None = None
    notes: str | None = None
    spec: FormatSpecDefinition = Field(default_factory=FormatSpecDefinition)

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "spec" in data:
            return data
        legacy = {
            spec_key: data[flat_key]
            for flat_key, spec_key in _LEGACY_SPEC_KEYS.items()
            if flat_key in data
        }
        if not legacy:
            return data
        folded = {k: v for k, v in data.items() if k not in _LEGACY_SPEC_KEYS}
        folded["spec"] = legacy
        return folded

    def to_format_spec(
        self,
        default_max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH,
    ) -> FormatSpec:
        """Build the engine-facing :class:`FormatSpec`.

        Text fields are encoded as UTF-8.  An unrecognised ``processorType``
        maps to the generic strategy; callers that want to report it should
        check :meth:`ProcessorType.parse` first.
        """
        spec = self.spec
        return FormatSpec(
            format_id=self.id,
            prefix=spec.prefix.encode("utf-8"),
            suffix=spec.suffix.encode("utf-8"),
            block_pattern=spec.valid_block_regex,
            replacement=spec.error_block_replacement.encode("utf-8"),
            max_block_length=spec.max_block_length or default_max_block_length,
            processor_type=ProcessorType.parse(spec.processor_type) or ProcessorType.GENERIC,
            block_length=spec.block_length,
            block_shape=spec.block_pattern or None,
            notes=self.notes,
        )

