"""Commission history endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_core.api.deps import CurrentOwner, get_db
from settlement_core.domain.money import quantize
from settlement_core.models.commission import Commission
from settlement_core.schemas.payment import CommissionListResponse, CommissionResponse

router = APIRouter()


@router.get("/", response_model=CommissionListResponse)
async def list_commissions(
    current_user: CurrentOwner,
    db: Annotated[AsyncSession, Depends(get_db)],
    business_id: UUID | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    currency: str | None = Query(default=None, min_length=3, max_length=3),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> CommissionListResponse:
    """Commission history. Owners see their own; admins see all or filter by owner."""
    query = select(Commission)
    if not current_user.is_admin:
        query = query.where(Commission.business_id == current_user.id)
    elif business_id:
        query = query.where(Commission.business_id == business_id)
    if status_filter:
        query = query.where(Commission.status == status_filter.upper())
    if currency:
        query = query.where(Commission.currency == currency.upper())

    filtered = query.subquery()
    count_result = await db.execute(select(func.count()).select_from(filtered))
    total = count_result.scalar() or 0

    # Commissions never mix currencies in one sum
    sums = await db.execute(
        select(filtered.c.currency, func.sum(filtered.c.amount)).group_by(filtered.c.currency)
    )
    totals_by_currency = {code: quantize(amount, code) for code, amount in sums.all()}

    offset = (page - 1) * page_size
    query = query.order_by(Commission.created_at.desc()).offset(offset).limit(page_size)

    result = await db.execute(query)
    commissions = list(result.scalars().all())

    return CommissionListResponse(
        commissions=[CommissionResponse.model_validate(c) for c in commissions],
        total=total,
        totals_by_currency=totals_by_currency,
        page=page,
        page_size=page_size,
    )
