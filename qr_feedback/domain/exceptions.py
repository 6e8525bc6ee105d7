"""Error taxonomy shared by adapters, services and the API layer.

"Not found" is never an exception: lookups return ``None`` and deletes
return ``False``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qr_feedback.domain.validation import ScanStatus


class QRFeedbackError(Exception):
    """Base class for all errors raised by this package."""


class PersistenceError(QRFeedbackError):
    """A backend rejected an operation (not retryable)."""


class TransientIOError(PersistenceError):
    """Network failure, timeout or unavailable backend, after retries ran out."""


class QuotaExceededError(PersistenceError):
    """Local storage is full; the caller should prompt for cleanup."""


class ValidationViolation(QRFeedbackError, ValueError):
    """Malformed input to generate/update/submit; nothing was persisted."""


class ScanRejected(QRFeedbackError):
    """A feedback submission was refused because of the QR code's state."""

    def __init__(self, status: "ScanStatus", message: str = ""):
        self.status = status
        super().__init__(message or f"QR code not accepting feedback: {status.value}")
