"""Unified error handling for pacer.

- ErrorCode: Machine-readable error classification
- PacerError and subclasses: Exceptions surfaced to callers
- Result/Ok/Err: Failure by value for operations that prefer not to raise
"""

from typing import Any

from .errors import BlockingOperationDetected, ErrorCode, PacerError, RetriesExhausted, SchedulerClosed
from .result import Err, Ok, Result

JsonDict = dict[str, Any]

__all__ = [
    # Errors
    "ErrorCode", "PacerError", "RetriesExhausted", "BlockingOperationDetected", "SchedulerClosed",
    # Result
    "Result", "Ok", "Err",
    # Types
    "JsonDict",
]
