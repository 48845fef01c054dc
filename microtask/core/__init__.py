"""
Core shared functionality for microtask.
Typed failures used by the repository, the REST API and the CLI.
"""

from .error_codes import (
    ErrorCategory,
    ErrorCode,
    MicrotaskError,
    TaskValidationError,
    TaskNotFoundError,
    StorageUnavailableError,
    TransactionFailedError,
    categorize_error,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "MicrotaskError",
    "TaskValidationError",
    "TaskNotFoundError",
    "StorageUnavailableError",
    "TransactionFailedError",
    "categorize_error",
]
