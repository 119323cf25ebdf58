"""Pydantic schemas for API validation."""

from settlement_core.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusResponse,
)
from settlement_core.schemas.payment import (
    CommissionListResponse,
    CommissionResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PayoutListResponse,
    PayoutResponse,
    PayoutRunRequest,
    WebhookAck,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingStatusResponse",
    # Payment
    "PaymentIntentCreate",
    "PaymentIntentResponse",
    "WebhookAck",
    # Commission & Payout
    "CommissionResponse",
    "CommissionListResponse",
    "PayoutRunRequest",
    "PayoutResponse",
    "PayoutListResponse",
]
