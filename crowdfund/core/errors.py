"""
Domain-specific exceptions for the crowdfunding core.

These exceptions represent authorization, validation and storage failures
and are mapped to appropriate HTTP status codes by whatever transport
sits on top of the repository gates.
"""

from typing import Any


class CrowdfundError(Exception):
    """Base exception for all crowdfunding domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthorizationError(CrowdfundError):
    """
    Raised when the caller is not identified or not permitted.

    Examples:
    - Token missing or not a string
    - Token does not match any session
    - Caller lacks the role or ownership an operation requires

    Never reveals whether the target resource exists.

    HTTP Status: 401 Unauthorized
    """

    def __init__(
        self, message: str = "Not authorized", details: dict[str, Any] | None = None
    ):
        super().__init__(message, details)


class ValidationError(CrowdfundError):
    """
    Raised when candidate data violates a rule.

    The `code` attribute carries one of the enumerated validation error
    codes from `crowdfund.domain.enums` so clients can switch on it.

    HTTP Status: 400 Bad Request
    """

    def __init__(self, message: str, code: str, details: dict[str, Any] | None = None):
        self.code = str(code.value) if hasattr(code, "value") else str(code)
        super().__init__(message, {"code": self.code, **(details or {})})


class NotFoundError(CrowdfundError):
    """
    Raised when a referenced entity does not exist.

    HTTP Status: 404 Not Found
    """

    pass


class StorageError(CrowdfundError):
    """
    Raised when the underlying store fails or is unreachable.

    Carries the original storage message.

    HTTP Status: 503 Service Unavailable
    """

    pass


class UploadError(CrowdfundError):
    """
    Raised when ingesting a file fails.

    HTTP Status: 400 Bad Request
    """

    pass


class InvariantError(CrowdfundError):
    """
    Raised when an entity wrapper is used in a way its state forbids.

    Examples:
    - Authenticating a system instance
    - Logging out an instance that was never authenticated

    HTTP Status: 500 Internal Server Error
    """

    pass


class FilterMisuseWarning(UserWarning):
    """Issued when a wrapper is projected in a way that probably leaks or hides data."""


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    AuthorizationError: 401,
    ValidationError: 400,
    NotFoundError: 404,
    StorageError: 503,
    UploadError: 400,
    InvariantError: 500,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
