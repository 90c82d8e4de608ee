"""
Domain error taxonomy.

Every error raised inside a unit of work aborts the whole unit.  Each
class carries the HTTP status and the user-facing message the API layer
renders; payment notification errors are mapped to bare status codes by
the notification route instead.
"""

from __future__ import annotations


class ShuttleError(Exception):
    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ShuttleError):
    status_code = 400
    default_detail = "Missing required fields"


class NotFoundError(ShuttleError):
    status_code = 404
    default_detail = "Not found"


class Forbidden(ShuttleError):
    status_code = 403
    default_detail = "Not allowed"


class AccountSuspended(ShuttleError):
    status_code = 403
    default_detail = "Account suspended. Please contact support."


class DuplicateReservation(ShuttleError):
    status_code = 409
    default_detail = "Already booked for this trip"


class CapacityExceeded(ShuttleError):
    status_code = 409
    default_detail = "Not enough seats available"


class TripNotBookable(ShuttleError):
    status_code = 409
    default_detail = "Trip is not open for booking"


class InvalidStateTransition(ShuttleError):
    status_code = 409
    default_detail = "Invalid status change"


class InsufficientCredits(ShuttleError):
    status_code = 402
    default_detail = "Insufficient credits"


class PaymentValidationError(ShuttleError):
    status_code = 400
    default_detail = "Invalid ITN data"


class PaymentTransactionNotFound(ShuttleError):
    status_code = 404
    default_detail = "Payment transaction not found"

    def __init__(self, detail: str | None = None, *, already_settled: bool = False):
        super().__init__(detail)
        # True when the transaction exists but has already left PENDING
        self.already_settled = already_settled


class InternalError(ShuttleError):
    status_code = 500
