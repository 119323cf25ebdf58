"""Payout endpoints for business owners and admins."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_core.api.deps import CurrentAdmin, CurrentOwner, get_db, get_payout_service
from settlement_core.core.exceptions import AuthorizationError, NotFoundError
from settlement_core.domain.money import quantize
from settlement_core.domain.payout_state import PayoutStatus
from settlement_core.models.payout import Payout
from settlement_core.schemas.payment import PayoutListResponse, PayoutResponse, PayoutRunRequest
from settlement_core.services.payout_service import PayoutService

router = APIRouter()

Payouts = Annotated[PayoutService, Depends(get_payout_service)]


@router.get("/", response_model=PayoutListResponse)
async def list_payouts(
    current_user: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
    business_id: UUID | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    currency: str | None = Query(default=None, min_length=3, max_length=3),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> PayoutListResponse:
    """Payout history. Owners see their own; admins see all or filter by owner."""
    conditions = []
    if not current_user.is_admin:
        conditions.append(Payout.business_id == current_user.id)
    elif business_id:
        conditions.append(Payout.business_id == business_id)
    if currency:
        conditions.append(Payout.currency == currency.upper())

    query = select(Payout).where(*conditions)
    if status_filter:
        query = query.where(Payout.status == status_filter.upper())

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar() or 0

    # Paid out per currency; each payout is single-currency
    sums = await db.execute(
        select(Payout.currency, func.sum(Payout.amount))
        .where(*conditions, Payout.status == PayoutStatus.SUCCEEDED.value)
        .group_by(Payout.currency)
    )
    paid_by_currency = {code: quantize(amount, code) for code, amount in sums.all()}

    offset = (page - 1) * page_size
    query = query.order_by(Payout.created_at.desc()).offset(offset).limit(page_size)

    result = await db.execute(query)
    payouts = list(result.scalars().all())

    return PayoutListResponse(
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
        total=total,
        paid_by_currency=paid_by_currency,
        page=page,
        page_size=page_size,
    )


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(
    payout_id: UUID,
    current_user: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Payout:
    """Get a specific payout."""
    payout = await db.get(Payout, payout_id)
    if not payout or (not current_user.is_admin and payout.business_id != current_user.id):
        raise NotFoundError("Payout", str(payout_id))
    return payout


@router.post("/run", response_model=PayoutResponse)
async def run_payout(
    request: PayoutRunRequest,
    current_user: CurrentOwner,
    payouts: Payouts,
) -> Payout:
    """Pay out pending commissions now.

    Owners may only request their own payout; admins may run it for anyone.
    """
    business_id = request.business_id or current_user.id
    if business_id != current_user.id and not current_user.is_admin:
        raise AuthorizationError("Only admins can run payouts for other owners")
    return await payouts.run_payout(business_id, request.currency)


@router.post("/{payout_id}/resume", response_model=PayoutResponse)
async def resume_payout(
    payout_id: UUID,
    current_user: CurrentAdmin,
    payouts: Payouts,
) -> Payout:
    """Retry the transfer of a payout stuck in PROCESSING (admin only)."""
    return await payouts.resume_payout(payout_id)
