"""Core utilities and security modules."""

from settlement_core.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingNotFound,
    Forbidden,
    GatewayUnavailable,
    IntentConflict,
    InvalidBookingStatus,
    InvalidPayoutStatus,
    InvalidDateRange,
    InvalidSignature,
    ItemNotFound,
    ItemUnavailable,
    MalformedPayload,
    NotFoundError,
    NothingToPayout,
    PayeeNotReady,
    ReconciliationFailed,
    StoreUnavailable,
    ValidationError,
)

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingNotFound",
    "Forbidden",
    "GatewayUnavailable",
    "IntentConflict",
    "InvalidBookingStatus",
    "InvalidPayoutStatus",
    "InvalidDateRange",
    "InvalidSignature",
    "ItemNotFound",
    "ItemUnavailable",
    "MalformedPayload",
    "NotFoundError",
    "NothingToPayout",
    "PayeeNotReady",
    "ReconciliationFailed",
    "StoreUnavailable",
    "ValidationError",
]
