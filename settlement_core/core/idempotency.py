"""Idempotency keys for gateway calls.

Keys are deterministic so a retried request, a second instance or a resumed
payout reuses the same key and the gateway collapses the duplicates.
"""

from uuid import UUID


def generate_idempotency_key(operation: str, entity_id: UUID | str) -> str:
    """Key for one gateway operation on one entity, e.g. ``payout:<id>``."""
    return f"{operation}:{entity_id}"


def intent_key(booking_id: UUID | str) -> str:
    return generate_idempotency_key("intent", booking_id)


def payout_key(payout_id: UUID | str) -> str:
    return generate_idempotency_key("payout", payout_id)
