"""
Base exception classes for the Lifeline core.

Each module should define its own exceptions that inherit from these bases.
Managers catch them at the operation boundary and turn them into result
models, so they rarely reach the hosting UI directly.
"""

from typing import Optional, Any


class LifelineError(Exception):
    """
    Base exception for all Lifeline errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthenticationError(LifelineError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class ExternalServiceError(LifelineError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service
