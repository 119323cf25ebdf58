"""Read side of the bookable item catalogue."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_core.core.exceptions import ItemNotFound
from settlement_core.domain.booking_ref import BookingKind
from settlement_core.models.items import BookableItemMixin, Destination, HireCar, Hotel

ITEM_MODELS: dict[BookingKind, type[BookableItemMixin]] = {
    BookingKind.DESTINATION: Destination,
    BookingKind.HOTEL: Hotel,
    BookingKind.HIRE_CAR: HireCar,
}


class ItemDirectory:
    """Looks up bookable items by kind."""

    async def find(self, db: AsyncSession, kind: BookingKind, item_id: UUID) -> BookableItemMixin | None:
        model = ITEM_MODELS[BookingKind(kind)]
        result = await db.execute(select(model).where(model.id == item_id))
        return result.scalar_one_or_none()

    async def get_active(self, db: AsyncSession, kind: BookingKind, item_id: UUID) -> BookableItemMixin:
        """Get an item that can be booked.

        Raises:
            ItemNotFound: If the item is missing or inactive
        """
        item = await self.find(db, kind, item_id)
        if item is None or not item.active:
            raise ItemNotFound(BookingKind(kind).value, str(item_id))
        return item

    async def owner_of(self, db: AsyncSession, kind: BookingKind, item_id: UUID) -> UUID | None:
        """Business owner of an item; None for platform-curated or deleted items."""
        model = ITEM_MODELS[BookingKind(kind)]
        result = await db.execute(select(model.owner_id).where(model.id == item_id))
        return result.scalar_one_or_none()


item_directory = ItemDirectory()
