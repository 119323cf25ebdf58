"""Settlement reconciler.

Applies gateway payment outcomes to bookings and creates the commission owed
to the item's business owner. Every event is applied in one transaction; a
booking is never left CONFIRMED/PAID without its commission.

Only two transitions are legal here:
- PENDING/PENDING -> CONFIRMED/PAID (payment succeeded)
- PENDING/PENDING -> CANCELLED/FAILED (payment failed)
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from settlement_core.core.exceptions import BookingNotFound, ReconciliationFailed, TransientError
from settlement_core.database import LedgerStore
from settlement_core.domain.booking_ref import BookingRef, parse_booking_ref
from settlement_core.domain.booking_state import (
    BookingStatus,
    PaymentStatus,
    assert_booking_transition,
    assert_payment_transition,
    can_settle,
)
from settlement_core.domain.payout_state import CommissionStatus
from settlement_core.gateways.base import GatewayEvent, GatewayEventKind
from settlement_core.models.booking import Booking
from settlement_core.models.commission import Commission
from settlement_core.services.commission_service import CommissionService, commission_service
from settlement_core.services.item_directory import ItemDirectory, item_directory

logger = logging.getLogger(__name__)


class SettlementOutcome(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SettlementResult:
    outcome: SettlementOutcome
    booking_id: UUID
    commission_id: UUID | None = None


class SettlementService:
    """Service for applying gateway events to the ledger."""

    def __init__(
        self,
        store: LedgerStore,
        commissions: CommissionService = commission_service,
        items: ItemDirectory = item_directory,
    ):
        self.store = store
        self.commissions = commissions
        self.items = items

    async def handle_gateway_event(self, event: GatewayEvent) -> SettlementResult:
        """Apply a verified gateway event.

        Safe to call any number of times for the same event, concurrently or not.

        Raises:
            BookingNotFound: event carries no usable booking reference, or the
                booking does not exist (non-retryable)
            ReconciliationFailed: transaction rolled back (retryable)
            StoreUnavailable: ledger store unreachable (retryable)
        """
        ref = parse_booking_ref(event.metadata)
        if ref is None:
            logger.warning(
                f"Gateway event {event.event_id} for intent {event.intent_id} "
                f"has no booking reference, metadata={event.metadata}"
            )
            raise BookingNotFound()

        try:
            if event.kind == GatewayEventKind.SUCCEEDED:
                result = await self._apply_success(ref, event)
            else:
                result = await self._apply_failure(ref, event)
        except IntegrityError as e:
            # A concurrent delivery inserted the commission first
            result = await self._resolve_race(ref, event, e)
        except (BookingNotFound, TransientError):
            raise
        except Exception as e:
            logger.exception(f"Settlement of {ref} rolled back for event {event.event_id}")
            raise ReconciliationFailed(f"Settlement of booking {ref.id} rolled back") from e

        logger.info(
            f"Gateway event {event.event_id} ({event.kind.value}) for {ref}: {result.outcome.value}"
        )
        return result

    async def _lock_booking(self, db, ref: BookingRef) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == ref.id).with_for_update()
        )
        booking = result.scalar_one_or_none()
        if booking is None or booking.kind != ref.kind.value:
            logger.warning(f"Gateway event references unknown booking {ref}")
            raise BookingNotFound(str(ref.id))
        return booking

    @staticmethod
    def _intent_mismatch(booking: Booking, event: GatewayEvent) -> bool:
        return bool(booking.payment_intent_id and booking.payment_intent_id != event.intent_id)

    def _ignore(self, booking: Booking, event: GatewayEvent, reason: str) -> SettlementResult:
        logger.warning(
            f"Ignoring {event.kind.value} event {event.event_id} for booking {booking.id} "
            f"({booking.status}/{booking.payment_status}): {reason}"
        )
        return SettlementResult(SettlementOutcome.IGNORED, booking.id)

    async def _apply_success(self, ref: BookingRef, event: GatewayEvent) -> SettlementResult:
        async with self.store.transaction() as db:
            booking = await self._lock_booking(db, ref)

            if booking.payment_status == PaymentStatus.PAID:
                existing = await self._find_commission(db, booking.id)
                return SettlementResult(
                    SettlementOutcome.DUPLICATE, booking.id, existing.id if existing else None
                )
            if self._intent_mismatch(booking, event):
                return self._ignore(booking, event, f"intent {event.intent_id} is not {booking.payment_intent_id}")
            if not can_settle(booking.status, booking.payment_status):
                return self._ignore(booking, event, "booking is no longer awaiting payment")

            assert_booking_transition(booking.status, BookingStatus.CONFIRMED)
            assert_payment_transition(booking.payment_status, PaymentStatus.PAID)
            booking.status = BookingStatus.CONFIRMED.value
            booking.payment_status = PaymentStatus.PAID.value
            booking.confirmed_at = datetime.now(UTC)
            if not booking.payment_intent_id:
                booking.payment_intent_id = event.intent_id

            commission = await self._ensure_commission(db, booking)
            await db.flush()

        return SettlementResult(
            SettlementOutcome.CONFIRMED, booking.id, commission.id if commission else None
        )

    async def _apply_failure(self, ref: BookingRef, event: GatewayEvent) -> SettlementResult:
        async with self.store.transaction() as db:
            booking = await self._lock_booking(db, ref)

            if booking.status == BookingStatus.CANCELLED:
                return SettlementResult(SettlementOutcome.DUPLICATE, booking.id)
            if booking.payment_status == PaymentStatus.PAID:
                return self._ignore(booking, event, "payment already captured")
            if self._intent_mismatch(booking, event):
                return self._ignore(booking, event, f"intent {event.intent_id} is not {booking.payment_intent_id}")
            if not can_settle(booking.status, booking.payment_status):
                return self._ignore(booking, event, "booking is no longer awaiting payment")

            assert_booking_transition(booking.status, BookingStatus.CANCELLED)
            assert_payment_transition(booking.payment_status, PaymentStatus.FAILED)
            booking.status = BookingStatus.CANCELLED.value
            booking.payment_status = PaymentStatus.FAILED.value
            booking.cancelled_at = datetime.now(UTC)
            if event.failure_message:
                logger.info(f"Payment for booking {booking.id} failed: {event.failure_message}")

        return SettlementResult(SettlementOutcome.CANCELLED, booking.id)

    @staticmethod
    async def _find_commission(db, booking_id: UUID) -> Commission | None:
        result = await db.execute(select(Commission).where(Commission.booking_id == booking_id))
        return result.scalar_one_or_none()

    async def _ensure_commission(self, db, booking: Booking) -> Commission | None:
        """Create the booking's commission unless it exists or the item has no owner.

        The unique constraint on ``commissions.booking_id`` settles any race
        this check loses.
        """
        owner_id = await self.items.owner_of(db, booking.ref.kind, booking.item_id)
        if owner_id is None:
            logger.info(f"Booking {booking.id} item {booking.item_id} has no business owner, no commission")
            return None

        existing = await self._find_commission(db, booking.id)
        if existing is not None:
            return existing

        quote = self.commissions.compute_commission(booking.amount, booking.currency)
        commission = Commission(
            booking_id=booking.id,
            business_id=owner_id,
            amount=quote.amount,
            rate=quote.rate,
            currency=quote.currency,
            status=CommissionStatus.PENDING.value,
        )
        db.add(commission)
        logger.info(
            f"Commission {quote.amount} {quote.currency} at {quote.rate} for booking {booking.id} "
            f"owed to {owner_id}"
        )
        return commission

    async def _resolve_race(self, ref: BookingRef, event: GatewayEvent, error: IntegrityError) -> SettlementResult:
        async with self.store.session() as db:
            booking = await db.get(Booking, ref.id)
            commission = await self._find_commission(db, ref.id)

        if booking is not None and booking.payment_status == PaymentStatus.PAID and commission is not None:
            logger.info(f"Concurrent delivery already settled booking {ref.id}")
            return SettlementResult(SettlementOutcome.DUPLICATE, ref.id, commission.id)

        logger.error(f"Settlement of {ref} hit a constraint violation: {error}")
        raise ReconciliationFailed(f"Settlement of booking {ref.id} rolled back") from error
