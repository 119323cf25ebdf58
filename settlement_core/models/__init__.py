"""Database models."""

from settlement_core.models.booking import Booking
from settlement_core.models.commission import Commission
from settlement_core.models.items import Destination, HireCar, Hotel
from settlement_core.models.payout import Payout
from settlement_core.models.user import User, UserRole

__all__ = [
    # User
    "User",
    "UserRole",
    # Items
    "Destination",
    "Hotel",
    "HireCar",
    # Booking
    "Booking",
    # Settlement
    "Commission",
    "Payout",
]

from settlement_core.core.immutability import register_immutability_enforcement  # noqa: E402

register_immutability_enforcement()
