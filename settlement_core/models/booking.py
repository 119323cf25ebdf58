"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from settlement_core.database import Base, utcnow
from settlement_core.domain.booking_ref import BookingKind, BookingRef
from settlement_core.domain.booking_state import BookingStatus, PaymentStatus


class Booking(Base):
    """Booking of a destination, hotel or hire car.

    One table serves every kind; ``kind`` selects which item table
    ``item_id`` points into.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_bookings_date_order"),
        CheckConstraint("amount > 0", name="ck_bookings_amount_positive"),
        Index("ix_bookings_item_dates", "kind", "item_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # DESTINATION, HOTEL, HIRE_CAR
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )

    # Dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Pricing (major units)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True)

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(10))  # payer, admin

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    @property
    def ref(self) -> BookingRef:
        return BookingRef(kind=BookingKind(self.kind), id=self.id)
