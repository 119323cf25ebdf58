"""Bookable item models (destinations, hotels, hire cars).

Item CRUD belongs to the catalogue service. Settlement only reads the owner,
the active flag and the price hint.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from settlement_core.database import Base, utcnow


class BookableItemMixin:
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    price_hint: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    @declared_attr
    def owner_id(cls) -> Mapped[uuid.UUID | None]:
        # Null for items curated by the platform itself
        return mapped_column(Uuid, ForeignKey("users.id"), nullable=True, index=True)


class Destination(BookableItemMixin, Base):
    __tablename__ = "destinations"


class Hotel(BookableItemMixin, Base):
    __tablename__ = "hotels"


class HireCar(BookableItemMixin, Base):
    __tablename__ = "hire_cars"
