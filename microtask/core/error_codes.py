"""
SOLE RESPONSIBILITY: Centralized error codes, categories and typed failures for microtask.
Every failure the repository surfaces to a caller is one of the exceptions defined here.
"""

from enum import Enum
from typing import Dict, Any, Optional
from datetime import datetime


class ErrorCategory(Enum):
    """High-level error classification for monitoring."""

    # Caller errors (4xx equivalent)
    VALIDATION = "validation"  # Malformed or out-of-enumeration input
    NOT_FOUND = "not_found"  # Target task does not exist

    # System errors (5xx equivalent)
    INFRASTRUCTURE = "infrastructure"  # Storage cannot be reached
    SYSTEM = "system"  # A statement inside a transaction failed


class ErrorCode(Enum):
    """Trackable error identifiers for consistent error handling."""

    # Validation Errors (2xxx)
    VALIDATION_TITLE_REQUIRED = 2001
    VALIDATION_DUE_DATE_REQUIRED = 2002
    VALIDATION_PRIORITY_INVALID = 2003
    VALIDATION_STEP_TITLE_REQUIRED = 2004
    VALIDATION_REQUEST_INVALID = 2005

    # Task Errors (3xxx)
    TASK_NOT_FOUND = 3001

    # Storage Errors (5xxx)
    STORAGE_UNAVAILABLE = 5001
    STORAGE_TRANSACTION_FAILED = 5002

    # Unknown (9xxx)
    UNKNOWN_ERROR = 9999


class MicrotaskError(Exception):
    """Base class for all typed failures surfaced by the task repository."""

    category: ErrorCategory = ErrorCategory.SYSTEM
    http_status: int = 500
    default_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None, task_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.task_id = task_id
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the JSON body returned by the HTTP layer."""
        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.code.value,
            "category": self.category.value,
        }
        if self.task_id is not None:
            body["task_id"] = self.task_id
        return body


class TaskValidationError(MicrotaskError):
    """Payload is malformed, misses a required field or carries an unknown priority."""

    category = ErrorCategory.VALIDATION
    http_status = 400
    default_code = ErrorCode.VALIDATION_REQUEST_INVALID


class TaskNotFoundError(MicrotaskError):
    """Operation targets a task id with no row behind it."""

    category = ErrorCategory.NOT_FOUND
    http_status = 404
    default_code = ErrorCode.TASK_NOT_FOUND

    def __init__(self, task_id: int, message: str = "Task not found"):
        super().__init__(message, task_id=task_id)


class StorageUnavailableError(MicrotaskError):
    """Connection or transaction infrastructure failure."""

    category = ErrorCategory.INFRASTRUCTURE
    http_status = 503
    default_code = ErrorCode.STORAGE_UNAVAILABLE


class TransactionFailedError(MicrotaskError):
    """A statement inside an atomic composite write failed; the whole write was rolled back."""

    category = ErrorCategory.SYSTEM
    http_status = 500
    default_code = ErrorCode.STORAGE_TRANSACTION_FAILED


def categorize_error(error: Exception) -> ErrorCategory:
    """Determines broad category for any exception reaching the HTTP boundary."""
    if isinstance(error, MicrotaskError):
        return error.category
    return ErrorCategory.SYSTEM
