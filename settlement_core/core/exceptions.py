"""Custom application exceptions.

Every exception carries a ``retryable`` flag. Retryable errors are transient
(gateway timeouts, store outages, rolled-back reconciliations) and are mapped
to 503 so webhook senders and clients try again.
"""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    retryable: bool = False

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


# ==================== VALIDATION ====================


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class InvalidDateRange(ValidationError):
    """Start date is not before end date, or lies in the past."""

    def __init__(self, detail: str = "Start date must be before end date and not in the past") -> None:
        super().__init__(detail=detail)


class InvalidSignature(AppException):
    """Webhook signature did not verify."""

    def __init__(self, detail: str = "Invalid webhook signature") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class MalformedPayload(AppException):
    """Webhook body could not be parsed."""

    def __init__(self, detail: str = "Malformed webhook payload") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ==================== NOT FOUND ====================


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ItemNotFound(NotFoundError):
    """Bookable item does not exist or is inactive."""

    def __init__(self, kind: str, identifier: str | None = None) -> None:
        super().__init__(kind.replace("_", " ").title(), identifier)


class BookingNotFound(NotFoundError):
    """Booking reference is missing, malformed or unknown."""

    def __init__(self, identifier: str | None = None) -> None:
        super().__init__("Booking", identifier)


# ==================== ACCESS ====================


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


Forbidden = AuthorizationError


# ==================== CONFLICT ====================


class ItemUnavailable(AppException):
    """Requested dates overlap an existing pending or confirmed booking."""

    def __init__(self, detail: str = "The selected dates are not available") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class IntentConflict(AppException):
    """Payment intent request disagrees with the booking or its stored intent."""

    def __init__(self, detail: str = "Payment intent does not match the booking") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidBookingStatus(AppException):
    """Invalid booking status for operation."""

    def __init__(self, detail: str = "This operation is not allowed for the current booking status") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidPayoutStatus(AppException):
    """Payout is not in a state that allows the operation."""

    def __init__(self, detail: str = "This operation is not allowed for the current payout status") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


# ==================== BUSINESS RULES ====================


class NothingToPayout(AppException):
    """Owner has no pending, unassigned commissions."""

    def __init__(self, detail: str = "No pending commissions to pay out") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PayeeNotReady(AppException):
    """Owner has not completed payout onboarding."""

    def __init__(self, detail: str = "Business owner is not set up to receive payouts") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# ==================== TRANSIENT ====================


class TransientError(AppException):
    """Base for failures the caller should retry."""

    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class GatewayUnavailable(TransientError):
    """Gateway did not answer in time or the transport failed."""

    def __init__(self, gateway: str, detail: str | None = None) -> None:
        message = f"Payment gateway '{gateway}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StoreUnavailable(TransientError):
    """Ledger store could not be reached."""

    def __init__(self, detail: str = "Ledger store is unavailable") -> None:
        super().__init__(detail)


class ReconciliationFailed(TransientError):
    """A settlement transaction was rolled back."""

    def __init__(self, detail: str = "Settlement could not be applied") -> None:
        super().__init__(detail)
