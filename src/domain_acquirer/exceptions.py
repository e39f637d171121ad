"""
Exception classes for the domain acquisition pipeline.

All exceptions inherit from AcquisitionError and carry a machine-readable
code, a human-readable message and optional details.
"""

from typing import Optional


class AcquisitionError(Exception):
    """Base exception for all domain acquisition errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AcquisitionError):
    """Raised for malformed or missing input and for disallowed transitions."""

    pass


class RegistrarError(AcquisitionError):
    """Raised when a registrar call fails or returns an error payload."""

    pass


class NotFoundError(AcquisitionError):
    """Raised when a referenced record id does not exist."""

    pass


class StoreError(AcquisitionError):
    """Raised when a record store operation fails."""

    pass


class TamperingError(StoreError):
    """Raised when HMAC validation of the store file fails."""

    pass
