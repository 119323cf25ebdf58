"""Applying gateway outcomes to bookings and commissions."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from settlement_core.core.exceptions import BookingNotFound, ReconciliationFailed
from settlement_core.core.immutability import ImmutabilityViolationError
from settlement_core.domain.booking_ref import BookingKind
from settlement_core.domain.booking_state import BookingStatus, PaymentStatus
from settlement_core.domain.payout_state import CommissionStatus
from settlement_core.gateways.base import GatewayEvent, GatewayEventKind
from settlement_core.models.booking import Booking
from settlement_core.models.commission import Commission
from settlement_core.services.payment_service import PaymentService
from settlement_core.services.settlement_service import SettlementOutcome, SettlementService


@pytest.fixture
def settlement(store):
    return SettlementService(store)


@pytest.fixture
def pay(store, gateway, seed):
    """Create the booking's intent and return the verified gateway event for it."""

    async def _pay(booking, kind=GatewayEventKind.SUCCEEDED, metadata=None):
        intent = await PaymentService(store, gateway).create_or_retrieve_intent(booking.id, seed.tourist)
        return gateway.parse_webhook(*gateway.build_event(intent.id, kind, metadata))

    return _pay


async def _load(store, booking_id):
    async with store.session() as db:
        booking = await db.get(Booking, booking_id)
        result = await db.execute(select(Commission).where(Commission.booking_id == booking_id))
        return booking, list(result.scalars().all())


async def test_success_confirms_and_creates_commission(make_booking, pay, settlement, store, seed):
    booking = await make_booking(amount=Decimal("400.00"))
    event = await pay(booking)

    result = await settlement.handle_gateway_event(event)

    assert result.outcome == SettlementOutcome.CONFIRMED
    stored, commissions = await _load(store, booking.id)
    assert (stored.status, stored.payment_status) == (BookingStatus.CONFIRMED, PaymentStatus.PAID)
    assert stored.confirmed_at is not None
    assert len(commissions) == 1
    commission = commissions[0]
    assert commission.id == result.commission_id
    assert commission.amount == Decimal("40.00")
    assert commission.rate == Decimal("0.1000")
    assert commission.currency == "USD"
    assert commission.business_id == seed.owner.id
    assert commission.status == CommissionStatus.PENDING
    assert commission.payout_id is None


async def test_three_decimal_currency_is_stored_exactly(make_booking, pay, settlement, store, gateway, seed):
    booking = await make_booking(amount=Decimal("12.345"), currency="BHD")
    intent = await PaymentService(store, gateway).create_or_retrieve_intent(
        booking.id, seed.tourist, Decimal("12.345"), "BHD"
    )
    assert intent.amount == Decimal("12.345")

    event = await pay(booking)
    await settlement.handle_gateway_event(event)

    stored, commissions = await _load(store, booking.id)
    assert stored.amount == Decimal("12.345")
    assert [c.amount for c in commissions] == [Decimal("1.235")]
    assert commissions[0].currency == "BHD"


async def test_duplicate_delivery_is_harmless(make_booking, pay, settlement, store):
    booking = await make_booking()
    event = await pay(booking)

    first = await settlement.handle_gateway_event(event)
    second = await settlement.handle_gateway_event(event)
    third = await settlement.handle_gateway_event(event)

    assert second.outcome == third.outcome == SettlementOutcome.DUPLICATE
    assert second.commission_id == first.commission_id
    _, commissions = await _load(store, booking.id)
    assert len(commissions) == 1


async def test_failure_cancels_without_commission(make_booking, pay, settlement, store):
    booking = await make_booking()
    event = await pay(booking, GatewayEventKind.FAILED)

    result = await settlement.handle_gateway_event(event)

    assert result.outcome == SettlementOutcome.CANCELLED
    stored, commissions = await _load(store, booking.id)
    assert (stored.status, stored.payment_status) == (BookingStatus.CANCELLED, PaymentStatus.FAILED)
    assert commissions == []

    again = await settlement.handle_gateway_event(event)
    assert again.outcome == SettlementOutcome.DUPLICATE


async def test_failure_after_success_is_ignored(make_booking, pay, settlement, store, gateway):
    booking = await make_booking()
    success = await pay(booking)
    await settlement.handle_gateway_event(success)

    failure = gateway.parse_webhook(*gateway.build_event(success.intent_id, GatewayEventKind.FAILED))
    result = await settlement.handle_gateway_event(failure)

    assert result.outcome == SettlementOutcome.IGNORED
    stored, commissions = await _load(store, booking.id)
    assert stored.payment_status == PaymentStatus.PAID
    assert len(commissions) == 1


async def test_success_after_failure_is_ignored(make_booking, pay, settlement, store, gateway):
    booking = await make_booking()
    failure = await pay(booking, GatewayEventKind.FAILED)
    await settlement.handle_gateway_event(failure)

    success = gateway.parse_webhook(*gateway.build_event(failure.intent_id, GatewayEventKind.SUCCEEDED))
    result = await settlement.handle_gateway_event(success)

    assert result.outcome == SettlementOutcome.IGNORED
    stored, commissions = await _load(store, booking.id)
    assert (stored.status, stored.payment_status) == (BookingStatus.CANCELLED, PaymentStatus.FAILED)
    assert commissions == []


async def test_success_for_cancelled_booking_is_ignored(make_booking, pay, bookings, settlement, store, seed):
    booking = await make_booking()
    event = await pay(booking)
    await bookings.cancel_booking(booking.id, seed.tourist)

    result = await settlement.handle_gateway_event(event)

    assert result.outcome == SettlementOutcome.IGNORED
    stored, commissions = await _load(store, booking.id)
    assert stored.payment_status == PaymentStatus.PENDING
    assert commissions == []


async def test_event_for_other_intent_is_ignored(make_booking, pay, settlement, store):
    booking = await make_booking()
    await pay(booking)

    stray = GatewayEvent(
        kind=GatewayEventKind.SUCCEEDED,
        intent_id="pi_someone_else",
        metadata=booking.ref.to_metadata(),
    )
    result = await settlement.handle_gateway_event(stray)

    assert result.outcome == SettlementOutcome.IGNORED
    stored, _ = await _load(store, booking.id)
    assert stored.status == BookingStatus.PENDING


async def test_legacy_metadata_key(make_booking, pay, settlement, store):
    booking = await make_booking()
    event = await pay(booking, metadata={"hotelBookingId": str(booking.id)})

    result = await settlement.handle_gateway_event(event)

    assert result.outcome == SettlementOutcome.CONFIRMED
    assert result.booking_id == booking.id


@pytest.mark.parametrize(
    "metadata",
    [
        {},
        {"booking_kind": "HOTEL", "booking_id": "garbage"},
        {"booking_kind": "HOTEL", "booking_id": str(uuid4())},
    ],
)
async def test_unusable_reference_not_found(settlement, metadata):
    event = GatewayEvent(kind=GatewayEventKind.SUCCEEDED, intent_id="pi_x", metadata=metadata)
    with pytest.raises(BookingNotFound) as exc_info:
        await settlement.handle_gateway_event(event)
    assert not exc_info.value.retryable


async def test_kind_mismatch_not_found(make_booking, pay, settlement):
    booking = await make_booking()
    await pay(booking)
    event = GatewayEvent(
        kind=GatewayEventKind.SUCCEEDED,
        intent_id="pi_x",
        metadata={"booking_kind": "HIRE_CAR", "booking_id": str(booking.id)},
    )
    with pytest.raises(BookingNotFound):
        await settlement.handle_gateway_event(event)


async def test_platform_item_gets_no_commission(make_booking, pay, settlement, store, seed):
    booking = await make_booking(kind=BookingKind.DESTINATION, item=seed.curated)
    event = await pay(booking)

    result = await settlement.handle_gateway_event(event)

    assert result.outcome == SettlementOutcome.CONFIRMED
    assert result.commission_id is None
    stored, commissions = await _load(store, booking.id)
    assert stored.payment_status == PaymentStatus.PAID
    assert commissions == []


async def test_cancel_after_payment_keeps_commission(make_booking, pay, bookings, settlement, store, seed):
    booking = await make_booking()
    await settlement.handle_gateway_event(await pay(booking))

    await bookings.cancel_booking(booking.id, seed.tourist)

    stored, commissions = await _load(store, booking.id)
    assert stored.status == BookingStatus.CANCELLED
    assert stored.payment_status == PaymentStatus.PAID
    assert [c.status for c in commissions] == [CommissionStatus.PENDING]


async def test_commission_failure_rolls_back_booking(make_booking, pay, store, monkeypatch):
    booking = await make_booking()
    event = await pay(booking)
    settlement = SettlementService(store)

    def explode(*args, **kwargs):
        raise RuntimeError("calculator offline")

    monkeypatch.setattr(settlement.commissions, "compute_commission", explode)

    with pytest.raises(ReconciliationFailed) as exc_info:
        await settlement.handle_gateway_event(event)
    assert exc_info.value.retryable

    stored, commissions = await _load(store, booking.id)
    assert (stored.status, stored.payment_status) == (BookingStatus.PENDING, PaymentStatus.PENDING)
    assert commissions == []

    monkeypatch.undo()
    retried = await settlement.handle_gateway_event(event)
    assert retried.outcome == SettlementOutcome.CONFIRMED


async def test_constraint_violation_rolls_back(make_booking, pay, settlement, store, seed, monkeypatch):
    booking = await make_booking()
    event = await pay(booking)

    # A commission row the existence check cannot see
    async with store.transaction() as db:
        db.add(
            Commission(
                booking_id=booking.id,
                business_id=seed.owner.id,
                amount=Decimal("40.00"),
                rate=Decimal("0.10"),
                currency="USD",
            )
        )

    async def not_found(db, booking_id):
        return None

    monkeypatch.setattr(SettlementService, "_find_commission", staticmethod(not_found))

    with pytest.raises(ReconciliationFailed):
        await settlement.handle_gateway_event(event)

    stored, _ = await _load(store, booking.id)
    assert stored.payment_status == PaymentStatus.PENDING


async def test_race_resolves_to_duplicate_when_settled(make_booking, pay, settlement, store):
    booking = await make_booking()
    event = await pay(booking)
    first = await settlement.handle_gateway_event(event)

    result = await settlement._resolve_race(booking.ref, event, error=Exception("unique violation"))

    assert result.outcome == SettlementOutcome.DUPLICATE
    assert result.commission_id == first.commission_id


async def test_commission_amount_is_frozen(make_booking, pay, settlement, store):
    booking = await make_booking()
    result = await settlement.handle_gateway_event(await pay(booking))

    with pytest.raises(ImmutabilityViolationError):
        async with store.transaction() as db:
            commission = await db.get(Commission, result.commission_id)
            commission.amount = Decimal("1.00")

    async with store.session() as db:
        count = await db.execute(select(func.count()).select_from(Commission))
        commission = await db.get(Commission, result.commission_id)
    assert count.scalar() == 1
    assert commission.amount == Decimal("40.00")


async def test_bookings_cannot_be_deleted(make_booking, store):
    booking = await make_booking()
    with pytest.raises(ImmutabilityViolationError):
        async with store.transaction() as db:
            await db.delete(await db.get(Booking, booking.id))
