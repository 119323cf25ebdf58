"""Booking lifecycle: creation, cancellation and status reads."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy import exists, func, select

from settlement_core.config import settings
from settlement_core.core.exceptions import BookingNotFound, Forbidden, ItemUnavailable
from settlement_core.database import LedgerStore
from settlement_core.domain.booking_ref import BookingKind
from settlement_core.domain.booking_state import (
    BLOCKING_STATUSES,
    CANCELLABLE_STATUSES,
    BookingStatus,
    PaymentStatus,
    assert_booking_transition,
)
from settlement_core.domain.date_range import validate_new_range
from settlement_core.domain.money import assert_positive_amount, normalize_currency, quantize
from settlement_core.models.booking import Booking
from settlement_core.models.user import User
from settlement_core.services.item_directory import ItemDirectory, item_directory

logger = logging.getLogger(__name__)

PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again."


def utc_today() -> date:
    return datetime.now(UTC).date()


@dataclass(frozen=True)
class BookingStatusView:
    status: str
    payment_status: str

    @property
    def message(self) -> str | None:
        if self.payment_status == PaymentStatus.FAILED:
            return PAYMENT_FAILED_MESSAGE
        return None


class BookingService:
    """Creates and cancels bookings; settlement moves them to PAID."""

    def __init__(
        self,
        store: LedgerStore,
        items: ItemDirectory = item_directory,
        today: Callable[[], date] = utc_today,
    ):
        self.store = store
        self.items = items
        self.today = today

    async def create_booking(
        self,
        payer_id: UUID,
        kind: BookingKind,
        item_id: UUID,
        start_date: date,
        end_date: date,
        amount: Decimal | None = None,
        currency: str | None = None,
    ) -> Booking:
        """Create a PENDING booking after validating dates and availability.

        When ``amount`` is omitted the item's price hint is charged per night.

        Raises:
            InvalidDateRange: start >= end or start before today
            ItemNotFound: item missing or inactive
            ItemUnavailable: overlaps a pending or confirmed booking
            ValidationError: amount not positive or bad currency
        """
        kind = BookingKind(kind)
        dates = validate_new_range(start_date, end_date, self.today())

        async with self.store.transaction() as db:
            item = await self.items.get_active(db, kind, item_id)

            currency = normalize_currency(currency or item.currency or settings.default_currency)
            if amount is None and item.price_hint is not None:
                amount = item.price_hint * dates.days
            assert_positive_amount(amount, "Booking")
            amount = quantize(Decimal(amount), currency)

            if await self._is_taken(db, kind, item_id, dates.start, dates.end):
                raise ItemUnavailable()

            booking = Booking(
                kind=kind.value,
                item_id=item_id,
                payer_id=payer_id,
                start_date=dates.start,
                end_date=dates.end,
                amount=amount,
                currency=currency,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
            )
            db.add(booking)

        logger.info(
            f"Booking {booking.id} created kind={kind.value} item={item_id} "
            f"{dates.start}..{dates.end} amount={amount} {currency}"
        )
        return booking

    @staticmethod
    async def _is_taken(db, kind: BookingKind, item_id: UUID, start: date, end: date) -> bool:
        """Half-open overlap against bookings still holding their dates."""
        query = select(
            exists().where(
                Booking.kind == kind.value,
                Booking.item_id == item_id,
                Booking.status.in_([s.value for s in BLOCKING_STATUSES]),
                Booking.start_date < end,
                Booking.end_date > start,
            )
        )
        result = await db.execute(query)
        return bool(result.scalar())

    async def cancel_booking(self, booking_id: UUID, actor: User) -> Booking:
        """Cancel a pending or confirmed booking as its payer or an admin.

        A commission already created for the booking is left untouched.

        Raises:
            BookingNotFound: unknown id
            Forbidden: actor is neither payer nor admin, or status is final
        """
        async with self.store.transaction() as db:
            result = await db.execute(
                select(Booking).where(Booking.id == booking_id).with_for_update()
            )
            booking = result.scalar_one_or_none()
            if booking is None:
                raise BookingNotFound(str(booking_id))

            if actor.is_admin:
                cancelled_by = "admin"
            elif booking.payer_id == actor.id:
                cancelled_by = "payer"
            else:
                raise Forbidden("Only the payer or an admin can cancel this booking")

            if booking.status not in CANCELLABLE_STATUSES:
                raise Forbidden(f"Cannot cancel a booking that is {booking.status}")

            assert_booking_transition(booking.status, BookingStatus.CANCELLED)
            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = datetime.now(UTC)
            booking.cancelled_by = cancelled_by

        logger.info(f"Booking {booking_id} cancelled by {cancelled_by} ({actor.id})")
        return booking

    async def get_status(self, booking_id: UUID) -> BookingStatusView:
        """Current status pair, read from the store on every call."""
        async with self.store.session() as db:
            result = await db.execute(
                select(Booking.status, Booking.payment_status).where(Booking.id == booking_id)
            )
            row = result.one_or_none()
        if row is None:
            raise BookingNotFound(str(booking_id))
        return BookingStatusView(status=row.status, payment_status=row.payment_status)

    async def get_booking(self, booking_id: UUID, actor: User | None = None) -> Booking:
        async with self.store.session() as db:
            booking = await db.get(Booking, booking_id)
            if booking is None:
                raise BookingNotFound(str(booking_id))
            if actor is not None and not actor.is_admin and booking.payer_id != actor.id:
                owner_id = await self.items.owner_of(db, BookingKind(booking.kind), booking.item_id)
                if owner_id != actor.id:
                    raise Forbidden("You don't have permission to access this booking")
        return booking

    async def list_bookings(
        self,
        actor: User,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Booking], int]:
        """Payer's own bookings, or every booking for an admin."""
        query = select(Booking)
        if not actor.is_admin:
            query = query.where(Booking.payer_id == actor.id)
        if status:
            query = query.where(Booking.status == status.upper())

        async with self.store.session() as db:
            count_result = await db.execute(select(func.count()).select_from(query.subquery()))
            total = count_result.scalar() or 0

            offset = (page - 1) * page_size
            result = await db.execute(
                query.order_by(Booking.created_at.desc()).offset(offset).limit(page_size)
            )
            bookings = list(result.scalars().all())

        return bookings, total
