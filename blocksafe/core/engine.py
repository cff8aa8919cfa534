"""Streaming validation and sanitization engines.

:class:`SanitizingEngine` validates a byte stream against a
:class:`~blocksafe.core.format_spec.FormatSpec` in a single forward pass and
writes a sanitized copy to a sink.  The stream must look like::

    [whitespace] PREFIX ( [whitespace] BLOCK )* [whitespace] SUFFIX [whitespace]

Every block must *fully* match the format's block grammar.  Blocks that never
match are replaced by the format's replacement bytes; everything else
(header, valid blocks, footer and every whitespace byte) is echoed unchanged.

**Scanner states**

1. *Leading whitespace* — echoed; end of input here is ``EmptyFile``.
2. *Header* — the prefix must follow exactly.  With an empty prefix the
   first non-whitespace byte is pushed back and starts the body.
3. *Body* — whitespace between blocks is echoed.  A byte equal to the first
   suffix byte triggers a lookahead of ``len(suffix) - 1`` bytes: an exact
   match ends the body, anything else seeds a new candidate block.  Bytes are
   then appended to the candidate one at a time and the whole candidate is
   tested after each append.  A candidate that runs into a suffix-start byte
   before matching, or grows to ``max_block_length`` without matching, is
   replaced.
4. *Trailing whitespace* — only whitespace may follow the footer.

:class:`FixedBlockEngine` is the strict variant for formats whose blocks
have a fixed size: the footer must match once started, and each block is read
as exactly ``block_length`` bytes.

**Error contract**: malformed input never raises; it is reported through
:class:`~blocksafe.core.results.ProcessResult.error`.  Malformed
configuration (an uncompilable grammar, a non-positive bound) raises
:class:`EngineConfigurationError` from the constructor, before any input is
read.

**Concurrency**: an engine only holds the immutable spec and compiled
patterns; all scanner state lives in a per-run object created inside
:meth:`SanitizingEngine.process`.  One engine may serve any number of
concurrent runs.

Usage::

    import io

    from blocksafe.core.engine import SanitizingEngine
    from blocksafe.core.format_spec import FormatSpec

    spec = FormatSpec(
        format_id="abc",
        prefix=b"123",
        suffix=b"789",
        block_pattern=r"A[1-9]C",
        replacement=b"A255C",
    )
    engine = SanitizingEngine(spec)
    out = io.BytesIO()
    result = await engine.process(io.BytesIO(b"123A?C789"), out)
    assert out.getvalue() == b"123A255C789"
    assert result.report.replaced_blocks == 1
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from blocksafe.core.byte_stream import (
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_WRITE_CHUNK_SIZE,
    ByteWriter,
    PushbackReader,
    is_whitespace,
)
from blocksafe.core.format_spec import FormatSpec, ProcessorType
from blocksafe.core.results import ProcessingErrorCode, ProcessResult, SanitizationReport

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(
    "blocksafe.engine",
    schema_url="https://opentelemetry.io/schemas/1.11.0",
)

# Grammar used when a format leaves validBlockRegex empty.
_ANY_BLOCK = re.compile(rb".+", re.DOTALL)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EngineConfigurationError(Exception):
    """Raised when a :class:`FormatSpec` cannot be turned into an engine.

    Attributes:
        format_id: The format whose configuration is invalid.
    """

    def __init__(self, format_id: str, message: str) -> None:
        super().__init__(f"Invalid configuration for format '{format_id}': {message}")
        self.format_id = format_id


def compile_block_pattern(format_id: str, pattern: str | None) -> re.Pattern[bytes]:
    """Compile a block grammar for byte-level full matching.

    An empty or missing pattern accepts any non-empty block.

    Raises:
        EngineConfigurationError: If *pattern* is not a valid regular
            expression.
    """
    if not pattern:
        return _ANY_BLOCK
    try:
        return re.compile(pattern.encode("utf-8"))
    except re.error as exc:
        raise EngineConfigurationError(
            format_id, f"invalid block pattern {pattern!r}: {exc}"
        ) from exc


def build_notes(replaced: int, format_notes: str | None = None) -> str:
    """Return the report notes for a run that replaced *replaced* blocks."""
    if replaced > 0:
        notes = f"Replaced {replaced} invalid block{'s' if replaced != 1 else ''}."
    else:
        notes = "No invalid blocks found."
    if format_notes:
        notes = f"{notes} {format_notes.strip()}"
    return notes


def _show(data: bytes | bytearray) -> str:
    return bytes(data).decode("ascii", errors="backslashreplace")


# ---------------------------------------------------------------------------
# Per-run scanners
# ---------------------------------------------------------------------------


class _GenericScan:
    """Scanner state for a single run of :class:`SanitizingEngine`."""

    def __init__(
        self,
        spec: FormatSpec,
        block_regex: re.Pattern[bytes],
        reader: PushbackReader,
        writer: ByteWriter,
    ) -> None:
        self.spec = spec
        self.block_regex = block_regex
        self.reader = reader
        self.writer = writer
        self.replaced = 0

    async def run(self) -> ProcessResult:
        first = await self._echo_whitespace()
        if first is None:
            return ProcessResult.fail(
                ProcessingErrorCode.EMPTY_FILE, "Empty or whitespace-only."
            )

        failure = await self._header(first)
        if failure is not None:
            return failure

        return await self._body()

    # -- states -------------------------------------------------------------

    async def _echo_whitespace(self) -> int | None:
        """Echo whitespace; return the first other byte, or None at EOF."""
        while True:
            byte = await self.reader.read_byte()
            if byte is None or not is_whitespace(byte):
                return byte
            await self.writer.write_byte(byte)

    async def _header(self, first: int) -> ProcessResult | None:
        prefix = self.spec.prefix
        if not prefix:
            self.reader.unread(first)
            return None

        if first != prefix[0]:
            return ProcessResult.fail(
                ProcessingErrorCode.INVALID_HEADER,
                f"First bytes must be '{self.spec.prefix_text}'.",
            )
        await self.writer.write_byte(first)

        for expected in prefix[1:]:
            byte = await self.reader.read_byte()
            if byte is None:
                return ProcessResult.fail(
                    ProcessingErrorCode.TRUNCATED_FILE,
                    f"Truncated header (expected '{self.spec.prefix_text}').",
                )
            if byte != expected:
                return ProcessResult.fail(
                    ProcessingErrorCode.INVALID_HEADER,
                    f"Header must be '{self.spec.prefix_text}'.",
                )
            await self.writer.write_byte(byte)
        return None

    async def _body(self) -> ProcessResult:
        suffix = self.spec.suffix
        while True:
            byte = await self._echo_whitespace()
            if byte is None:
                return self._end_of_body()

            seed = bytes([byte])
            if suffix and byte == suffix[0]:
                peeked = await self._peek_suffix(byte)
                if peeked is None:
                    return self._truncated_footer()
                if peeked == suffix:
                    await self.writer.write(suffix)
                    return await self._trailing_whitespace()
                seed = peeked

            failure = await self._scan_block(seed)
            if failure is not None:
                return failure

    async def _peek_suffix(self, first: int) -> bytes | None:
        peeked = bytearray([first])
        for _ in range(len(self.spec.suffix) - 1):
            byte = await self.reader.read_byte()
            if byte is None:
                return None
            peeked.append(byte)
        return bytes(peeked)

    async def _scan_block(self, seed: bytes) -> ProcessResult | None:
        suffix = self.spec.suffix
        block = bytearray(seed)
        while True:
            if self.block_regex.fullmatch(block):
                await self.writer.write(bytes(block))
                return None

            if len(block) >= self.spec.max_block_length:
                await self._replace(block, "block exceeded max_block_length")
                return None

            byte = await self.reader.read_byte()
            if byte is None:
                return ProcessResult.fail(
                    ProcessingErrorCode.TRUNCATED_FILE, "Truncated block."
                )

            if suffix and byte == suffix[0]:
                await self._replace(block, "block ran into footer")
                self.reader.unread(byte)
                return None

            block.append(byte)

    async def _trailing_whitespace(self) -> ProcessResult:
        while True:
            byte = await self.reader.read_byte()
            if byte is None:
                return self._success()
            if not is_whitespace(byte):
                return ProcessResult.fail(
                    ProcessingErrorCode.TRAILING_DATA,
                    f"Extra non-whitespace data after footer '{self.spec.suffix_text}'.",
                )
            await self.writer.write_byte(byte)

    # -- helpers ------------------------------------------------------------

    async def _replace(self, block: bytearray, reason: str) -> None:
        await self.writer.write(self.spec.replacement)
        self.replaced += 1
        logger.debug(
            "Replaced invalid block for format %s (%s): length=%d total_replaced=%d",
            self.spec.format_id,
            reason,
            len(block),
            self.replaced,
        )

    def _end_of_body(self) -> ProcessResult:
        if not self.spec.suffix:
            return self._success()
        return ProcessResult.fail(
            ProcessingErrorCode.INVALID_FOOTER,
            f"Missing footer '{self.spec.suffix_text}'.",
        )

    def _truncated_footer(self) -> ProcessResult:
        return ProcessResult.fail(
            ProcessingErrorCode.TRUNCATED_FILE,
            f"Truncated footer (expected '{self.spec.suffix_text}').",
        )

    def _success(self) -> ProcessResult:
        return ProcessResult.ok(
            SanitizationReport(
                replaced_blocks=self.replaced,
                notes=build_notes(self.replaced, self.spec.notes),
            )
        )


class _FixedScan(_GenericScan):
    """Scanner state for a single run of :class:`FixedBlockEngine`."""

    def __init__(
        self,
        spec: FormatSpec,
        block_regex: re.Pattern[bytes],
        shape_regex: re.Pattern[bytes] | None,
        reader: PushbackReader,
        writer: ByteWriter,
    ) -> None:
        super().__init__(spec, block_regex, reader, writer)
        self.shape_regex = shape_regex

    async def _body(self) -> ProcessResult:
        suffix = self.spec.suffix
        while True:
            byte = await self._echo_whitespace()
            if byte is None:
                return self._end_of_body()

            if suffix and byte == suffix[0]:
                peeked = await self._peek_suffix(byte)
                if peeked is None:
                    return self._truncated_footer()
                if peeked != suffix:
                    return ProcessResult.fail(
                        ProcessingErrorCode.INVALID_FOOTER,
                        f"Last bytes must be '{self.spec.suffix_text}'.",
                    )
                await self.writer.write(suffix)
                return await self._trailing_whitespace()

            failure = await self._fixed_block(byte)
            if failure is not None:
                return failure

    async def _fixed_block(self, first: int) -> ProcessResult | None:
        block = bytearray([first])
        while len(block) < self.spec.block_length:
            byte = await self.reader.read_byte()
            if byte is None:
                return ProcessResult.fail(
                    ProcessingErrorCode.TRUNCATED_FILE,
                    f"Truncated block (expected {self.spec.block_length} bytes).",
                )
            block.append(byte)

        if any(is_whitespace(b) for b in block):
            return ProcessResult.fail(
                ProcessingErrorCode.UNEXPECTED_BYTE,
                "Whitespace is not allowed inside a block.",
            )

        if self.shape_regex is not None and not self.shape_regex.fullmatch(block):
            return ProcessResult.fail(
                ProcessingErrorCode.INVALID_BLOCK,
                f"Malformed block '{_show(block)}'.",
            )

        if self.block_regex.fullmatch(block):
            await self.writer.write(bytes(block))
        else:
            await self._replace(block, "block failed validity pattern")
        return None


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------


class SanitizingEngine:
    """Single-pass streaming sanitizer bound to one :class:`FormatSpec`.

    Args:
        spec: Rules for the format this engine handles.
        read_chunk_size: Bytes requested from the source per underlying read.
        write_chunk_size: Output bytes buffered before each sink write.

    Raises:
        EngineConfigurationError: If the spec names another processor type,
            its grammar does not compile or its accumulation bound is not
            positive.
    """

    processor_type = ProcessorType.GENERIC

    def __init__(
        self,
        spec: FormatSpec,
        *,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        write_chunk_size: int = DEFAULT_WRITE_CHUNK_SIZE,
    ) -> None:
        if spec.processor_type is not self.processor_type:
            raise EngineConfigurationError(
                spec.format_id,
                f"processor type {spec.processor_type.value!r} cannot be run by "
                f"{type(self).__name__}",
            )
        if spec.max_block_length < 1:
            raise EngineConfigurationError(
                spec.format_id,
                f"max_block_length must be positive (got {spec.max_block_length})",
            )
        self._spec = spec
        self._block_regex = compile_block_pattern(spec.format_id, spec.block_pattern)
        self._read_chunk_size = read_chunk_size
        self._write_chunk_size = write_chunk_size

        logger.info(
            "%s created for format %s", type(self).__name__, spec.format_id
        )

    @property
    def spec(self) -> FormatSpec:
        return self._spec

    @property
    def format_id(self) -> str:
        return self._spec.format_id

    async def process(
        self,
        source: Any,
        sink: Any,
        cancellation: asyncio.Event | None = None,
    ) -> ProcessResult:
        """Validate *source* and write its sanitized form to *sink*.

        Reads *source* exactly once, forward only.  Output is written as it
        is produced; on failure the bytes already written are left in
        *sink* for the caller to discard.

        Args:
            source: Byte source (``async read(n)``) or binary file object.
            sink: Byte sink (``async write(data)``) or binary file object.
            cancellation: Optional event; once set, the run stops at the next
                byte-level read or write.

        Returns:
            A :class:`~blocksafe.core.results.ProcessResult`.

        Raises:
            asyncio.CancelledError: If *cancellation* is set, or the task is
                cancelled, before the run completes.  No result is produced.
        """
        reader = PushbackReader(
            source, chunk_size=self._read_chunk_size, cancellation=cancellation
        )
        writer = ByteWriter(
            sink, chunk_size=self._write_chunk_size, cancellation=cancellation
        )

        with tracer.start_as_current_span(
            "blocksafe.sanitize",
            kind=trace.SpanKind.INTERNAL,
        ) as span:
            span.set_attribute("format.id", self.format_id)
            span.set_attribute("format.processor_type", self.processor_type.value)

            logger.info(
                "Processing started for format %s (processor=%s)",
                self.format_id,
                self.processor_type.value,
            )
            try:
                result = await self._new_scan(reader, writer).run()
                await writer.flush()
            except asyncio.CancelledError:
                span.set_status(Status(StatusCode.ERROR, "cancelled"))
                logger.info(
                    "Processing cancelled for format %s after %d byte(s)",
                    self.format_id,
                    reader.bytes_read,
                )
                raise

            span.set_attribute("sanitize.bytes_read", reader.bytes_read)
            span.set_attribute("sanitize.bytes_written", writer.bytes_written)
            span.set_attribute("sanitize.success", result.success)

            if result.report is not None:
                span.set_attribute("sanitize.replaced_blocks", result.report.replaced_blocks)
                logger.info(
                    "Processing finished for format %s: replaced_blocks=%d bytes_in=%d bytes_out=%d",
                    self.format_id,
                    result.report.replaced_blocks,
                    reader.bytes_read,
                    writer.bytes_written,
                )
            elif result.error is not None:
                span.set_attribute("sanitize.error_code", result.error.code.value)
                span.set_status(Status(StatusCode.ERROR, result.error.detail))
                logger.info(
                    "Processing rejected input for format %s: code=%s detail=%s",
                    self.format_id,
                    result.error.code.value,
                    result.error.detail,
                )

        return result

    def _new_scan(self, reader: PushbackReader, writer: ByteWriter) -> _GenericScan:
        return _GenericScan(self._spec, self._block_regex, reader, writer)


class FixedBlockEngine(SanitizingEngine):
    """Sanitizer for formats made of fixed-size blocks.

    Differs from :class:`SanitizingEngine` in three ways: each block is
    exactly ``spec.block_length`` bytes; a started footer must complete
    (``InvalidFooter`` otherwise); and structural problems inside a block
    are rejected instead of sanitized — whitespace yields ``UnexpectedByte``
    and a block failing ``spec.block_shape`` yields ``InvalidBlock``.  Blocks
    with the right shape that fail the validity grammar are replaced.
    """

    processor_type = ProcessorType.FIXED

    def __init__(
        self,
        spec: FormatSpec,
        *,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        write_chunk_size: int = DEFAULT_WRITE_CHUNK_SIZE,
    ) -> None:
        if spec.block_length < 1:
            raise EngineConfigurationError(
                spec.format_id,
                f"block_length must be positive for fixed blocks (got {spec.block_length})",
            )
        self._shape_regex = (
            compile_block_pattern(spec.format_id, spec.block_shape)
            if spec.block_shape
            else None
        )
        super().__init__(
            spec,
            read_chunk_size=read_chunk_size,
            write_chunk_size=write_chunk_size,
        )

    def _new_scan(self, reader: PushbackReader, writer: ByteWriter) -> _GenericScan:
        return _FixedScan(
            self._spec, self._block_regex, self._shape_regex, reader, writer
        )
