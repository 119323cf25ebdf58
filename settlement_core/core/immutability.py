"""Immutability enforcement for settlement records using SQLAlchemy events.

Bookings, commissions and payouts are never deleted. A commission's amount,
rate, currency, booking and payee are fixed at insert, as are a payout's
amount, currency and payee.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import event, inspect

from settlement_core.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify immutable settlement records."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Settlement records are immutable after creation."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def changed_fields(target, fields: tuple[str, ...]) -> list[str]:
    """Names of the given attributes that carry unflushed changes."""
    state = inspect(target)
    return [name for name in fields if state.attrs[name].history.has_changes()]


def _forbid_delete(model) -> None:
    name = model.__name__

    @event.listens_for(model, "before_delete")
    def prevent_delete(mapper, connection, target):
        _log_immutability_violation(name, "DELETE", str(target.id))
        raise ImmutabilityViolationError(name, "DELETE", str(target.id))


def _freeze_fields(model, fields: tuple[str, ...]) -> None:
    name = model.__name__

    @event.listens_for(model, "before_update")
    def prevent_frozen_update(mapper, connection, target):
        changed = changed_fields(target, fields)
        if changed:
            operation = f"UPDATE {', '.join(changed)} on"
            _log_immutability_violation(name, operation, str(target.id))
            raise ImmutabilityViolationError(name, operation, str(target.id))


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Safe to call more than once.
    """
    global _registered
    if _registered:
        return

    from settlement_core.models.booking import Booking
    from settlement_core.models.commission import FROZEN_COMMISSION_FIELDS, Commission
    from settlement_core.models.payout import Payout

    for model in (Booking, Commission, Payout):
        _forbid_delete(model)

    _freeze_fields(Commission, FROZEN_COMMISSION_FIELDS)
    _freeze_fields(Payout, ("business_id", "amount", "currency"))

    _registered = True
    logger.info("Immutability enforcement registered for settlement records")
