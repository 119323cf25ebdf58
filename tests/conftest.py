"""
Shared test configuration.

Every test gets its own in-memory SQLite ledger and a fresh sandbox gateway.
"""

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from settlement_core.core.security import create_access_token
from settlement_core.database import LedgerStore, get_ledger_store
from settlement_core.api.deps import get_gateway_service
from settlement_core.domain.booking_ref import BookingKind
from settlement_core.gateways.base import GatewayEventKind, GatewayType
from settlement_core.gateways.manual import ManualGateway
from settlement_core.main import app
from settlement_core.models import Destination, HireCar, Hotel, User
from settlement_core.models.user import UserRole
from settlement_core.services.booking_service import BookingService
from settlement_core.services.gateway_service import GatewayService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "today" for service-level tests
TODAY = date(2026, 3, 1)

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
async def store():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    ledger = LedgerStore(engine)
    await ledger.create_all()
    yield ledger
    await ledger.dispose()


@pytest.fixture
def gateway():
    return ManualGateway(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
async def seed(store):
    """Users and items shared by most tests."""
    tourist = User(email="tourist@example.com", name="Tess Tourist", role=UserRole.TOURIST)
    other_tourist = User(email="other@example.com", name="Omar Other", role=UserRole.TOURIST)
    owner = User(
        email="owner@example.com",
        name="Hotel Owner",
        role=UserRole.HOTEL_OWNER,
        stripe_connect_id="acct_owner",
        payouts_enabled=True,
    )
    unready_owner = User(
        email="unready@example.com",
        name="Car Owner",
        role=UserRole.HIRE_CAR_OWNER,
        stripe_connect_id=None,
        payouts_enabled=False,
    )
    admin = User(email="admin@example.com", name="Admin", role=UserRole.ADMIN)

    async with store.transaction() as db:
        db.add_all([tourist, other_tourist, owner, unready_owner, admin])
        await db.flush()

        hotel = Hotel(name="Harbour Hotel", owner_id=owner.id, price_hint=Decimal("100.00"), currency="USD")
        destination = Destination(name="Glacier Walk", owner_id=owner.id, price_hint=Decimal("60.00"), currency="USD")
        curated = Destination(name="City Tour", owner_id=None, price_hint=Decimal("50.00"), currency="USD")
        hire_car = HireCar(name="Compact Hatchback", owner_id=unready_owner.id, price_hint=Decimal("45.00"), currency="USD")
        closed_hotel = Hotel(name="Closed Inn", owner_id=owner.id, active=False, currency="USD")
        db.add_all([hotel, destination, curated, hire_car, closed_hotel])

    return SimpleNamespace(
        tourist=tourist,
        other_tourist=other_tourist,
        owner=owner,
        unready_owner=unready_owner,
        admin=admin,
        hotel=hotel,
        destination=destination,
        curated=curated,
        hire_car=hire_car,
        closed_hotel=closed_hotel,
    )


@pytest.fixture
def bookings(store):
    return BookingService(store, today=lambda: TODAY)


@pytest.fixture
def make_booking(bookings, seed):
    """Create a PENDING booking, by default 4 nights at the hotel for 400.00 USD."""
    counter = {"offset": 0}

    async def _make(kind=BookingKind.HOTEL, item=None, amount=Decimal("400.00"), currency="USD", payer=None, nights=4):
        item = item or seed.hotel
        start = TODAY + timedelta(days=1 + counter["offset"])
        counter["offset"] += nights + 1
        return await bookings.create_booking(
            payer_id=(payer or seed.tourist).id,
            kind=kind,
            item_id=item.id,
            start_date=start,
            end_date=start + timedelta(days=nights),
            amount=amount,
            currency=currency,
        )

    return _make


def token_for(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


def signed_event(gateway: ManualGateway, intent_id: str, kind=GatewayEventKind.SUCCEEDED, metadata=None):
    payload, signature = gateway.build_event(intent_id, kind, metadata)
    return payload, {gateway.signature_header: signature, "Content-Type": "application/json"}


@pytest.fixture
async def client(store, gateway):
    """Async client wired to the test ledger and the sandbox gateway."""
    gateways = GatewayService({GatewayType.MANUAL: gateway})
    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_gateway_service] = lambda: gateways

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
