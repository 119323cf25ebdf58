"""Booking state machine.

A booking carries two status fields. ``status`` tracks the reservation and
``payment_status`` tracks the money. Settlement only ever moves a booking
out of PENDING/PENDING, and ``payment_status`` never leaves PAID.
"""

from enum import Enum

from settlement_core.core.exceptions import ValidationError


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PAID: set(),
    PaymentStatus.FAILED: set(),
}

# Statuses that hold the item's dates
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Statuses a payer or admin may still cancel from
CANCELLABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def assert_booking_transition(current: str, target: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(BookingStatus(current), set())
    if BookingStatus(target) not in allowed:
        raise ValidationError(f"Invalid booking transition: {current} -> {target}")


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(PaymentStatus(current), set())
    if PaymentStatus(target) not in allowed:
        raise ValidationError(f"Invalid payment transition: {current} -> {target}")


def can_settle(status: str, payment_status: str) -> bool:
    """Whether a gateway outcome may still be applied to the booking."""
    return status == BookingStatus.PENDING and payment_status == PaymentStatus.PENDING
