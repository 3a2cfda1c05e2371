"""
Error taxonomy shared by the booking core.

Raised by the constraint store, admission checker and lifecycle engine;
the webhook reconciler converts every one of them into an explicit
Ack/Reject so nothing escapes to the payment processor.
"""


class MarketplaceError(Exception):
    """Base exception for all booking core errors."""
    pass


class ValidationError(MarketplaceError):
    """Malformed input. Caller's fault, never retried."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self):
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class InvalidTransition(ValidationError):
    """Raised when a status change is not allowed from the booking's current status."""
    pass


class ConflictError(MarketplaceError):
    """
    Admission rejected for a business reason.
    `reason` is an apps.bookings.admission.RejectReason so the UI can explain it.
    """

    def __init__(self, reason, message=None):
        self.reason = reason
        super().__init__(message or getattr(reason, 'label', str(reason)))


class ConstraintViolation(ConflictError):
    """The store rejected an insert because a concurrent booking won the race."""
    pass


class NotFoundError(MarketplaceError):
    """Referenced barber, service or booking does not exist."""
    pass


class SignatureError(MarketplaceError):
    """Webhook signature missing or invalid."""
    pass


class UpstreamError(MarketplaceError):
    """Backing store or payment processor unavailable. Safe to retry later."""
    pass
