"""Payout and commission state machines.

Payout states:
- PROCESSING: batch created, members claimed, transfer in flight
- SUCCEEDED: transfer confirmed, members PROCESSED
- FAILED: transfer definitively rejected, members released back to PENDING

Commission states:
- PENDING: owed to the business owner, eligible for the next payout
- PROCESSED: paid out by a succeeded payout
- FAILED: reserved for manual write-off, never set automatically
"""

from enum import Enum

from settlement_core.core.exceptions import ValidationError


class PayoutStatus(str, Enum):
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class CommissionStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


PAYOUT_TRANSITIONS = {
    PayoutStatus.PROCESSING: {PayoutStatus.SUCCEEDED, PayoutStatus.FAILED},
    PayoutStatus.SUCCEEDED: set(),
    PayoutStatus.FAILED: set(),
}

COMMISSION_TRANSITIONS = {
    CommissionStatus.PENDING: {CommissionStatus.PROCESSED, CommissionStatus.FAILED},
    CommissionStatus.PROCESSED: set(),
    CommissionStatus.FAILED: set(),
}


def assert_payout_transition(current: str, target: str) -> None:
    """Validate payout state transition.

    Args:
        current: Current payout status
        target: Target payout status

    Raises:
        ValidationError: If transition is not allowed
    """
    allowed = PAYOUT_TRANSITIONS.get(PayoutStatus(current), set())
    if PayoutStatus(target) not in allowed:
        raise ValidationError(f"Invalid payout transition: {current} -> {target}")


def assert_commission_transition(current: str, target: str) -> None:
    allowed = COMMISSION_TRANSITIONS.get(CommissionStatus(current), set())
    if CommissionStatus(target) not in allowed:
        raise ValidationError(f"Invalid commission transition: {current} -> {target}")
