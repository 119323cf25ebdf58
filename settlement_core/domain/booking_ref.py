"""Booking kinds and the reference carried through the payment gateway."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class BookingKind(str, Enum):
    """Bookable verticals."""

    DESTINATION = "DESTINATION"
    HOTEL = "HOTEL"
    HIRE_CAR = "HIRE_CAR"


# Metadata keys written by earlier clients, one per vertical
LEGACY_METADATA_KEYS = {
    "bookingId": BookingKind.DESTINATION,
    "hotelBookingId": BookingKind.HOTEL,
    "hireCarBookingId": BookingKind.HIRE_CAR,
}


@dataclass(frozen=True)
class BookingRef:
    """A booking identified by its kind and id."""

    kind: BookingKind
    id: UUID

    def to_metadata(self) -> dict[str, str]:
        return {"booking_kind": self.kind.value, "booking_id": str(self.id)}

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


def parse_booking_ref(metadata: dict | None) -> BookingRef | None:
    """Resolve a booking reference from gateway metadata.

    Returns None when no usable reference is present.
    """
    if not metadata:
        return None

    kind_value = metadata.get("booking_kind")
    id_value = metadata.get("booking_id")
    if kind_value is None and id_value is None:
        for key, kind in LEGACY_METADATA_KEYS.items():
            if metadata.get(key):
                kind_value, id_value = kind.value, metadata[key]
                break

    if not kind_value or not id_value:
        return None

    try:
        return BookingRef(kind=BookingKind(str(kind_value).upper()), id=UUID(str(id_value)))
    except ValueError:
        return None
