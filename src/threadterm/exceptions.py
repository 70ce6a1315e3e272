"""Domain exception hierarchy for the threadterm client."""

from __future__ import annotations


class ThreadTermError(RuntimeError):
    """Base class for all domain-level client errors."""


class ApiConnectionError(ThreadTermError):
    """Raised when the messaging backend cannot be reached."""


class ApiResponseError(ThreadTermError):
    """Raised when the backend answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadError(ThreadTermError):
    """Raised when a file upload fails."""


class SendRejectedError(ThreadTermError):
    """Raised when a send is attempted while the composer cannot send."""


class ConfigValidationError(ThreadTermError):
    """Raised when configuration cannot be validated safely."""
