"""User database model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from settlement_core.database import Base, utcnow


class UserRole:
    """Role names as issued in access tokens."""

    ADMIN = "admin"
    HOTEL_OWNER = "hotel_owner"
    HIRE_CAR_OWNER = "hire_car_owner"
    DESTINATION_OWNER = "destination_owner"
    TOURIST = "tourist"

    OWNERS = (HOTEL_OWNER, HIRE_CAR_OWNER, DESTINATION_OWNER)


class User(Base):
    """User account model.

    Accounts are managed by the identity service; this service reads them and
    never writes the onboarding fields.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(
        String(30), nullable=False, default=UserRole.TOURIST
    )  # admin, hotel_owner, hire_car_owner, destination_owner, tourist
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Payee onboarding (Stripe Connect)
    stripe_connect_id: Mapped[str | None] = mapped_column(String(100))
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_payout_ready(self) -> bool:
        return bool(self.is_active and self.stripe_connect_id and self.payouts_enabled)
