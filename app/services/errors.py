"""
Domain errors.

Every error keeps the operator-facing message apart from the machine
detail/code so the UI can display them separately.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from app.services.parsers.base import RowIssue


class RoyaltyServiceError(Exception):
    """Base class for royalty service errors."""

    def __init__(self, message: str, details: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details, "code": self.code}


class NotFoundError(RoyaltyServiceError):
    """A referenced artist, record or file does not exist."""


class ImportValidationError(RoyaltyServiceError):
    """Fatal validation failure detected before any insertion."""

    def __init__(self, message: str, errors: List["RowIssue"], details: Optional[str] = None):
        super().__init__(message, details=details, code="validation_failed")
        self.errors = errors


class TrackResolutionError(RoyaltyServiceError):
    """A track referenced by the import could not be created or resolved."""

    def __init__(self, title: str, details: Optional[str] = None):
        super().__init__(f"Failed to create track: {title}", details=details, code="track_resolution_failed")
        self.title = title


class BatchInsertError(RoyaltyServiceError):
    """A royalty insert batch failed after `inserted` rows were committed."""

    def __init__(self, inserted: int, batch_number: int, details: Optional[str] = None):
        super().__init__(
            f"Failed to insert royalties batch {batch_number}",
            details=details,
            code="batch_insert_failed",
        )
        self.inserted = inserted
        self.batch_number = batch_number


class IngestTimeoutError(RoyaltyServiceError):
    """The creation path exceeded the configured timeout."""

    def __init__(self, timeout: float):
        super().__init__(
            "Request timed out",
            details=f"Track creation did not complete within {timeout:g} seconds",
            code="timeout",
        )


class PaymentRequestError(RoyaltyServiceError):
    """A withdrawal request was rejected by the gating rules."""
