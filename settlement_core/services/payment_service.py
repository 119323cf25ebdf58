"""Payment intents, one per booking."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from settlement_core.core.exceptions import (
    BookingNotFound,
    Forbidden,
    IntentConflict,
    InvalidBookingStatus,
)
from settlement_core.core.idempotency import intent_key
from settlement_core.database import LedgerStore
from settlement_core.domain.booking_ref import parse_booking_ref
from settlement_core.domain.booking_state import BookingStatus, PaymentStatus, can_settle
from settlement_core.domain.money import normalize_currency, quantize
from settlement_core.gateways.base import PaymentGateway, PaymentIntent
from settlement_core.models.booking import Booking
from settlement_core.models.user import User

logger = logging.getLogger(__name__)


class PaymentService:
    """Creates or returns the single payment intent of a booking."""

    def __init__(self, store: LedgerStore, gateway: PaymentGateway):
        self.store = store
        self.gateway = gateway

    @staticmethod
    def _assert_matches(booking: Booking, amount: Decimal, currency: str, what: str) -> None:
        currency = normalize_currency(currency)
        if currency != booking.currency or quantize(Decimal(amount), currency) != booking.amount:
            raise IntentConflict(
                f"{what} {amount} {currency} does not match booking amount "
                f"{booking.amount} {booking.currency}"
            )

    async def _load_booking(self, booking_id: UUID) -> Booking:
        async with self.store.session() as db:
            booking = await db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound(str(booking_id))
        return booking

    async def create_or_retrieve_intent(
        self,
        booking_id: UUID,
        payer: User,
        amount: Decimal | None = None,
        currency: str | None = None,
    ) -> PaymentIntent:
        """Return the booking's intent, creating it on first call.

        Safe to retry: the gateway call is keyed by the booking id and the
        intent id is stored only if none is stored yet.

        Raises:
            BookingNotFound: unknown booking
            Forbidden: caller is not the payer
            InvalidBookingStatus: booking is no longer awaiting payment
            IntentConflict: amount or currency disagree with the booking or its intent
            GatewayUnavailable: gateway did not answer
        """
        booking = await self._load_booking(booking_id)

        if booking.payer_id != payer.id and not payer.is_admin:
            raise Forbidden("Only the payer can pay for this booking")
        if not can_settle(booking.status, booking.payment_status):
            raise InvalidBookingStatus(
                f"Booking is {booking.status}/{booking.payment_status}, not awaiting payment"
            )
        if amount is not None or currency is not None:
            self._assert_matches(
                booking,
                amount if amount is not None else booking.amount,
                currency or booking.currency,
                "Requested",
            )

        if booking.payment_intent_id:
            return await self._retrieve_for(booking, booking.payment_intent_id)

        intent = await self.gateway.create_intent(
            amount=booking.amount,
            currency=booking.currency,
            metadata=booking.ref.to_metadata(),
            idempotency_key=intent_key(booking.id),
            description=f"{booking.kind.replace('_', ' ').title()} booking {booking.id}",
        )

        async with self.store.transaction() as db:
            result = await db.execute(
                update(Booking)
                .where(
                    Booking.id == booking.id,
                    Booking.payment_intent_id.is_(None),
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                )
                .values(payment_intent_id=intent.id)
                .execution_options(synchronize_session=False)
            )
            stored = result.rowcount == 1
            if not stored:
                current = await db.execute(
                    select(Booking.payment_intent_id, Booking.status, Booking.payment_status)
                    .where(Booking.id == booking.id)
                )
                row = current.one()

        if stored:
            logger.info(f"Booking {booking.id} bound to intent {intent.id}")
            return intent

        if row.payment_intent_id and row.payment_intent_id != intent.id:
            # Another request stored its intent first
            logger.info(f"Booking {booking.id} already bound to {row.payment_intent_id}, returning it")
            return await self._retrieve_for(booking, row.payment_intent_id)
        if row.payment_intent_id == intent.id:
            return intent
        raise InvalidBookingStatus(
            f"Booking is {row.status}/{row.payment_status}, not awaiting payment"
        )

    async def _retrieve_for(self, booking: Booking, intent_id: str) -> PaymentIntent:
        intent = await self.gateway.retrieve_intent(intent_id)
        self._assert_matches(booking, intent.amount, intent.currency, "Stored intent")
        return intent

    async def retrieve_intent(self, intent_id: str, actor: User) -> PaymentIntent:
        """Fetch an intent for the payer of the booking it belongs to."""
        intent = await self.gateway.retrieve_intent(intent_id)
        if actor.is_admin:
            return intent

        ref = parse_booking_ref(intent.metadata)
        if ref is None:
            raise Forbidden("Payment intent does not belong to a booking")
        booking = await self._load_booking(ref.id)
        if booking.payer_id != actor.id or booking.payment_intent_id != intent_id:
            raise Forbidden("You don't have permission to access this payment")
        return intent
