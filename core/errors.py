"""Application exception hierarchy and user-facing error messages."""
from __future__ import annotations

from typing import Any, Optional


class DaycareError(Exception):
    """Base exception class for application-specific errors."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: Optional[str] = None, details: Any = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message or "An unexpected error occurred"
        self.details = details
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ValidationError(DaycareError):
    """Exception for data validation errors."""

    code = "VALIDATION_FAILED"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Validation error", details=details)


class StoreError(DaycareError):
    """The local database could not complete an operation."""

    code = "DATABASE_QUERY_FAILED"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Database error", details=details)


class RecordNotFoundError(StoreError):
    code = "RECORD_NOT_FOUND"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Record not found", details=details)


class UnsupportedOperationError(DaycareError):
    code = "FEATURE_NOT_AVAILABLE"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Unsupported operation", details=details)


class BackupError(DaycareError):
    """Writing a snapshot to the backup directory failed."""

    code = "FILE_ACCESS_DENIED"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Backup failed", details=details)


class RestoreError(DaycareError):
    """A snapshot could not be read or was rejected before import."""

    code = "INVALID_FORMAT"

    def __init__(self, message=None, details=None):
        super().__init__(message=message or "Invalid backup file format", details=details)


_USER_MESSAGES = {
    "VALIDATION_FAILED": "Please check your input and try again.",
    "DATABASE_QUERY_FAILED": "The local database could not be updated. Please try again.",
    "RECORD_NOT_FOUND": "The requested record could not be found.",
    "FEATURE_NOT_AVAILABLE": "This action is not supported.",
    "FILE_ACCESS_DENIED": "The backup could not be written. Check directory path and permissions.",
    "INVALID_FORMAT": "The selected file is not a valid backup.",
}


def as_daycare_error(error: BaseException) -> DaycareError:
    """Wrap arbitrary exceptions so callers can rely on ``code``/``message``."""
    if isinstance(error, DaycareError):
        return error
    if isinstance(error, PermissionError):
        return BackupError(f"Permission denied: {error}")
    if isinstance(error, OSError):
        return BackupError(str(error) or error.__class__.__name__)
    return DaycareError(str(error) or error.__class__.__name__)


def format_error_for_user(error: BaseException) -> str:
    wrapped = as_daycare_error(error)
    hint = _USER_MESSAGES.get(wrapped.code)
    if hint is None:
        return wrapped.message
    return f"{wrapped.message}. {hint}" if wrapped.message else hint


__all__ = [
    "BackupError",
    "DaycareError",
    "RecordNotFoundError",
    "RestoreError",
    "StoreError",
    "UnsupportedOperationError",
    "ValidationError",
    "as_daycare_error",
    "format_error_for_user",
]
