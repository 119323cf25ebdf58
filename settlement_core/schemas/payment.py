"""Payment, commission and payout Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentCreate(BaseModel):
    """Schema for requesting the payment intent of a booking."""

    booking_id: UUID
    amount: Decimal | None = Field(None, gt=0, max_digits=14, decimal_places=3)
    currency: str | None = Field(None, min_length=3, max_length=3)


class PaymentIntentResponse(BaseModel):
    """Client-side handle of a payment intent."""

    intent_id: str
    client_secret: str | None
    amount: Decimal
    currency: str
    status: str
    booking_id: UUID | None = None


class CommissionResponse(BaseModel):
    """Schema for commission response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    business_id: UUID
    amount: Decimal
    rate: Decimal
    currency: str
    status: str
    payout_id: UUID | None
    transfer_id: str | None
    processed_at: datetime | None
    created_at: datetime


class CommissionListResponse(BaseModel):
    """Schema for paginated commission list."""

    commissions: list[CommissionResponse]
    total: int
    totals_by_currency: dict[str, Decimal]  # Sum of commissions matching the filter
    page: int
    page_size: int


class PayoutRunRequest(BaseModel):
    """Schema for triggering a payout."""

    business_id: UUID | None = None  # Defaults to the caller
    currency: str | None = Field(None, min_length=3, max_length=3)


class PayoutResponse(BaseModel):
    """Schema for payout response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    amount: Decimal
    currency: str
    status: str
    transfer_id: str | None
    failure_reason: str | None
    commission_ids: list[UUID]
    processed_at: datetime | None
    created_at: datetime


class PayoutListResponse(BaseModel):
    """Schema for paginated payout list."""

    payouts: list[PayoutResponse]
    total: int
    paid_by_currency: dict[str, Decimal]  # Sum of succeeded payouts
    page: int
    page_size: int


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
    booking_id: UUID | None = None
