"""
Custom exception classes for the DriveNow rental core.

These exceptions provide precise error types that controllers turn into the
JSON envelope instead of generic 500 errors. Each carries a machine-readable
``code`` and the HTTP status it maps to.
"""

from typing import Optional


class DriveNowError(Exception):
    """Base class for every domain error raised by the rental core."""

    code = "Error"
    status_code = 500
    default_message = "Error: unexpected failure"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None) -> None:
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------- validation (400) ----------------------------
class ValidationError(DriveNowError):
    """Raised when a request payload is missing or malformed fields."""

    code = "ValidationFailed"
    status_code = 400
    default_message = "Error: invalid request"

    def __init__(self, message: Optional[str] = None, errors: Optional[dict] = None) -> None:
        self.errors = dict(errors or {})
        super().__init__(message)


class PromotionRejectedError(DriveNowError):
    """Raised when a promotion code supplied by the caller does not qualify."""

    code = "PromotionRejected"
    status_code = 400
    default_message = "Error: promotion code cannot be applied"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message, code=reason)


# ---------------------------- not found (404) ----------------------------
class NotFoundError(DriveNowError):
    code = "NotFound"
    status_code = 404
    default_message = "Error: record not found"


class VehicleNotFoundError(NotFoundError):
    """Raised when a vehicle ID cannot be found in the system."""

    default_message = "Error: vehicle not found"


class CustomerNotFoundError(NotFoundError):
    default_message = "Error: customer not found"


class EmployeeNotFoundError(NotFoundError):
    default_message = "Error: employee not found"


class RentalOrderNotFoundError(NotFoundError):
    """Raised when a rental order cannot be found in the system."""

    default_message = "Error: rental order not found"


class InvoiceNotFoundError(NotFoundError):
    default_message = "Error: invoice not found"


class PaymentNotFoundError(NotFoundError):
    default_message = "Error: payment not found"


class PromotionNotFoundError(NotFoundError):
    default_message = "Error: promotion not found"


# ---------------------------- conflict (409) ----------------------------
class ConflictError(DriveNowError):
    code = "Conflict"
    status_code = 409
    default_message = "Error: conflicting state"


class InvalidTransitionError(ConflictError):
    """Raised when a rental order event is not allowed from its current status."""

    code = "InvalidTransition"
    default_message = "Error: transition not allowed"


class VehicleStateConflictError(ConflictError):
    """Raised when a vehicle's status or version changed under the caller."""

    code = "VehicleStateConflict"
    default_message = "Error: vehicle is not available"


class DuplicateInvoiceError(ConflictError):
    code = "DuplicateInvoice"
    default_message = "Error: an invoice already exists for this rental order"


class OverpaymentNotAllowedError(ConflictError):
    code = "OverpaymentNotAllowed"
    default_message = "Error: payment exceeds the remaining amount"


class UsageLimitReachedError(ConflictError):
    code = "UsageLimitReached"
    default_message = "Error: promotion usage limit reached"


class InvoiceClosedError(ConflictError):
    code = "InvoiceClosed"
    default_message = "Error: invoice no longer accepts changes"
