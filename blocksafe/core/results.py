"""Result types returned by the BlockSafe sanitizing engines.

Every engine run ends in exactly one :class:`ProcessResult`:

* ``success=True`` — the stream was accepted; :attr:`ProcessResult.report`
  carries a :class:`SanitizationReport` describing how many blocks were
  replaced.
* ``success=False`` — the stream was rejected; :attr:`ProcessResult.error`
  carries a :class:`ProcessingError` with a machine-readable code and a
  human-readable detail string suitable for showing to the uploader.

Malformed input is never signalled by raising.  The HTTP layer maps every
``success=False`` result to a client error.

Usage::

    from blocksafe.core.results import ProcessingErrorCode, ProcessResult, SanitizationReport

    ok = ProcessResult.ok(SanitizationReport(replaced_blocks=2, notes="Replaced 2 invalid blocks."))
    bad = ProcessResult.fail(ProcessingErrorCode.TRUNCATED_FILE, "Truncated header.")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ProcessingErrorCode(str, Enum):
    """Classification of a rejected input stream."""

    EMPTY_FILE = "EmptyFile"
    INVALID_HEADER = "InvalidHeader"
    INVALID_FOOTER = "InvalidFooter"
    INVALID_BLOCK = "InvalidBlock"
    UNEXPECTED_BYTE = "UnexpectedByte"
    TRUNCATED_FILE = "TruncatedFile"
    TRAILING_DATA = "TrailingData"
    INVALID_FORMAT = "InvalidFormat"


@dataclass(frozen=True)
class ProcessingError:
    """Why a stream was rejected.

    Attributes:
        code: Error classification.
        detail: Message describing the violation, safe to return to clients.
    """

    code: ProcessingErrorCode
    detail: str


@dataclass(frozen=True)
class SanitizationReport:
    """Summary of a successful run.

    ``was_malicious`` is derived from ``replaced_blocks`` so the two can
    never disagree.

    Attributes:
        replaced_blocks: Number of blocks substituted with the replacement
            bytes.
        notes: Descriptive summary of the run.
        was_malicious: ``True`` when at least one block was replaced.
    """

    replaced_blocks: int = 0
    notes: str = ""
    was_malicious: bool = field(init=False)

    def __post_init__(self) -> None:
        if self.replaced_blocks < 0:
            raise ValueError("replaced_blocks must be non-negative")
        object.__setattr__(self, "was_malicious", self.replaced_blocks > 0)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one engine run.

    Exactly one of ``report`` / ``error`` is set, selected by ``success``.
    Prefer the :meth:`ok` and :meth:`fail` constructors.
    """

    success: bool
    report: SanitizationReport | None = None
    error: ProcessingError | None = None

    def __post_init__(self) -> None:
        if self.success and (self.report is None or self.error is not None):
            raise ValueError("a successful result carries a report and no error")
        if not self.success and (self.error is None or self.report is not None):
            raise ValueError("a failed result carries an error and no report")

    @classmethod
    def ok(cls, report: SanitizationReport) -> "ProcessResult":
        return cls(success=True, report=report)

    @classmethod
    def fail(cls, code: ProcessingErrorCode, detail: str) -> "ProcessResult":
        return cls(success=False, error=ProcessingError(code=code, detail=detail))
