"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from settlement_core.domain.booking_ref import BookingKind


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    kind: BookingKind
    item_id: UUID
    start_date: date
    end_date: date
    amount: Decimal | None = Field(None, gt=0, max_digits=14, decimal_places=3)
    currency: str | None = Field(None, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: BookingKind
    item_id: UUID
    payer_id: UUID
    start_date: date
    end_date: date
    amount: Decimal
    currency: str
    status: str
    payment_status: str
    payment_intent_id: str | None
    cancelled_by: str | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingStatusResponse(BaseModel):
    """Status pair polled by the payment page."""

    booking_id: UUID
    status: str
    payment_status: str
    message: str | None = None
