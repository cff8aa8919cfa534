"""BlockSafe core streaming components.

This package contains the format description, the byte-level sanitizing
engines, the result types they return, and the format detector and registry
that bind uploaded files to engines.  Import the common types via this
module::

    from blocksafe.core import FormatSpec, ProcessResult, SanitizingEngine
"""

from blocksafe.core.engine import EngineConfigurationError, FixedBlockEngine, SanitizingEngine
from blocksafe.core.format_spec import FormatSpec, ProcessorType
from blocksafe.core.results import (
    ProcessingError,
    ProcessingErrorCode,
    ProcessResult,
    SanitizationReport,
)

__all__ = [
    "EngineConfigurationError",
    "FixedBlockEngine",
    "FormatSpec",
    "ProcessResult",
    "ProcessingError",
    "ProcessingErrorCode",
    "ProcessorType",
    "SanitizationReport",
    "SanitizingEngine",
]
