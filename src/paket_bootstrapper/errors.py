"""
Error types for the Paket bootstrapper.

This module defines the BootstrapperError base class and subclasses for the
failure categories of an update attempt. Callers should raise these instead of
returning ad-hoc status codes; the CLI maps them to an exit code.

Error codes:
- invalid_argument: bad input (unparseable version, invalid state transition)
- unavailable: the feed could not be reached or answered with an error
- failed_precondition: the package does not contain the expected payload
- internal: unexpected failure
- self_update_failed: the self-update swap failed and was rolled back
- rollback_failed: the self-update swap failed and the restore failed too
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class BootstrapperError(Exception):
    """
    Base exception class for bootstrapper errors.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "unavailable", "failed_precondition", "internal").
        message: Human-readable error message.
        details: Optional structured details (e.g., URLs, paths).

    Example:
        >>> raise BootstrapperError(
        ...     error_code="unavailable",
        ...     message="Feed returned 503",
        ...     details={"url": "https://www.nuget.org/api/v2/package/Paket"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a BootstrapperError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(BootstrapperError):
    """Error raised for invalid input, such as an unparseable version string."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class UnavailableError(BootstrapperError):
    """
    Error raised when the package feed cannot be used.

    Covers DNS failures, timeouts and HTTP error statuses. Fatal for the
    current update attempt.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an UnavailableError."""
        super().__init__(error_code="unavailable", message=message, details=details)


class FailedPreconditionError(BootstrapperError):
    """
    Error raised when a precondition for the operation is not met.

    Used when a downloaded package cannot be unpacked or does not contain the
    expected payload executable.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a FailedPreconditionError."""
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class InternalError(BootstrapperError):
    """Error raised for unexpected internal errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InternalError."""
        super().__init__(error_code="internal", message=message, details=details)


class SelfUpdateError(BootstrapperError):
    """
    Error raised when the self-update swap failed and was rolled back.

    The original executable is back at its path. The failure that triggered
    the rollback is available as ``__cause__``.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a SelfUpdateError."""
        super().__init__(
            error_code="self_update_failed", message=message, details=details
        )


class RollbackFailedError(BootstrapperError):
    """
    Error raised when both the self-update swap and its rollback failed.

    The original executable may only exist at ``aside_path``.

    Attributes:
        restore_error: The exception raised by the restore move.
        aside_path: Where the original executable was moved to.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        restore_error: BaseException | None = None,
        aside_path: Path | None = None,
    ) -> None:
        """Initialize a RollbackFailedError."""
        super().__init__(
            error_code="rollback_failed", message=message, details=details
        )
        self.restore_error = restore_error
        self.aside_path = aside_path
