"""API dependencies for authentication, the ledger store and services."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_core.core.exceptions import AuthenticationError, AuthorizationError
from settlement_core.core.security import decode_access_token
from settlement_core.database import LedgerStore, get_ledger_store
from settlement_core.gateways.base import PaymentGateway
from settlement_core.models.user import User, UserRole
from settlement_core.services.booking_service import BookingService
from settlement_core.services.gateway_service import GatewayService, gateway_service
from settlement_core.services.payment_service import PaymentService
from settlement_core.services.payout_service import PayoutService
from settlement_core.services.settlement_service import SettlementService

# Security scheme
security = HTTPBearer()

Store = Annotated[LedgerStore, Depends(get_ledger_store)]


async def get_db(store: Store) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped read session."""
    async with store.session() as session:
        yield session


def get_gateway_service() -> GatewayService:
    return gateway_service


def get_payment_gateway(
    gateways: Annotated[GatewayService, Depends(get_gateway_service)],
) -> PaymentGateway:
    """Gateway used for new intents and transfers."""
    return gateways.default


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token.

    The token role must still match the account role.
    """
    claims = decode_access_token(credentials.credentials)
    user = await db.get(User, claims.user_id)

    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")
    if user.role != claims.role:
        raise AuthenticationError("Token role is out of date")

    return user


async def get_current_owner(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are a business owner."""
    if current_user.role not in (*UserRole.OWNERS, UserRole.ADMIN):
        raise AuthorizationError("Business owner access required")
    return current_user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are an admin."""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


# ==================== SERVICES ====================


def get_booking_service(store: Store) -> BookingService:
    return BookingService(store)


def get_payment_service(
    store: Store,
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
) -> PaymentService:
    return PaymentService(store, gateway)


def get_settlement_service(store: Store) -> SettlementService:
    return SettlementService(store)


def get_payout_service(
    store: Store,
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
) -> PayoutService:
    return PayoutService(store, gateway)


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentOwner = Annotated[User, Depends(get_current_owner)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
