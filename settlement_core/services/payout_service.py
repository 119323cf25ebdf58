"""Payout aggregator.

Bundles a business owner's pending commissions into one payout, transfers
the total through the gateway and records the outcome on the payout and all
of its commissions together.

A payout whose transfer outcome is unknown (gateway timeout) stays
PROCESSING with its commissions claimed. ``resume_payout`` re-sends the
transfer under the same idempotency key, so the owner is paid at most once.
"""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from settlement_core.config import settings
from settlement_core.core.exceptions import (
    AppException,
    GatewayUnavailable,
    InvalidPayoutStatus,
    NotFoundError,
    NothingToPayout,
    PayeeNotReady,
    ReconciliationFailed,
)
from settlement_core.core.idempotency import payout_key
from settlement_core.database import LedgerStore
from settlement_core.domain.money import quantize
from settlement_core.domain.payout_state import (
    CommissionStatus,
    PayoutStatus,
    assert_payout_transition,
)
from settlement_core.gateways.base import PaymentGateway, TransferResult
from settlement_core.models.commission import Commission
from settlement_core.models.payout import Payout
from settlement_core.models.user import User

logger = logging.getLogger(__name__)


class PayoutService:
    """Service for batching and transferring commissions."""

    def __init__(self, store: LedgerStore, gateway: PaymentGateway):
        self.store = store
        self.gateway = gateway

    @staticmethod
    def _pending_for(business_id: UUID):
        return select(Commission).where(
            Commission.business_id == business_id,
            Commission.status == CommissionStatus.PENDING.value,
            Commission.payout_id.is_(None),
        )

    async def run_payout(self, business_id: UUID, currency: str | None = None) -> Payout:
        """Pay out every pending commission of one owner in one currency.

        Without ``currency`` the currency of the oldest pending commission
        is used; commissions in other currencies wait for their own run.

        Raises:
            NothingToPayout: no pending, unassigned commissions
            PayeeNotReady: owner cannot receive transfers
            ReconciliationFailed: a commission was claimed concurrently
            GatewayUnavailable: transfer outcome unknown, payout left PROCESSING
        """
        async with self.store.transaction() as db:
            query = self._pending_for(business_id)
            if currency:
                query = query.where(Commission.currency == currency.upper())
            result = await db.execute(
                query.order_by(Commission.created_at, Commission.id).with_for_update()
            )
            commissions = list(result.scalars().all())
            if not commissions:
                raise NothingToPayout()

            owner = await db.get(User, business_id)
            if owner is None or not owner.is_payout_ready:
                raise PayeeNotReady()
            destination = owner.stripe_connect_id

            batch_currency = commissions[0].currency
            members = [c for c in commissions if c.currency == batch_currency]
            total = quantize(sum((c.amount for c in members), Decimal("0")), batch_currency)

            payout = Payout(
                business_id=business_id,
                amount=total,
                currency=batch_currency,
                status=PayoutStatus.PROCESSING.value,
                commission_ids=[str(c.id) for c in members],
            )
            db.add(payout)
            await db.flush()

            # Claim only rows still pending and unassigned at this point
            claim = await db.execute(
                update(Commission)
                .where(
                    Commission.id.in_([c.id for c in members]),
                    Commission.status == CommissionStatus.PENDING.value,
                    Commission.payout_id.is_(None),
                )
                .values(payout_id=payout.id)
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount != len(members):
                logger.warning(
                    f"Payout for {business_id} claimed {claim.rowcount}/{len(members)} commissions, rolling back"
                )
                raise ReconciliationFailed("Commissions were claimed by a concurrent payout run")

        logger.info(
            f"Payout {payout.id} created for {business_id}: {total} {batch_currency} "
            f"from {len(members)} commissions"
        )
        return await self._transfer(payout, destination)

    async def resume_payout(self, payout_id: UUID) -> Payout:
        """Re-send the transfer of a payout left PROCESSING.

        Raises:
            NotFoundError: unknown payout
            InvalidPayoutStatus: payout already finished
            PayeeNotReady: owner can no longer receive transfers
        """
        async with self.store.session() as db:
            payout = await db.get(Payout, payout_id)
            if payout is None:
                raise NotFoundError("Payout", str(payout_id))
            if payout.status != PayoutStatus.PROCESSING:
                raise InvalidPayoutStatus(f"Payout {payout_id} is already {payout.status}")
            owner = await db.get(User, payout.business_id)

        if owner is None or not owner.is_payout_ready:
            raise PayeeNotReady()

        logger.info(f"Resuming payout {payout_id}")
        return await self._transfer(payout, owner.stripe_connect_id)

    async def _transfer(self, payout: Payout, destination: str) -> Payout:
        try:
            result = await self.gateway.create_transfer(
                destination=destination,
                amount=payout.amount,
                currency=payout.currency,
                metadata={
                    "payout_id": str(payout.id),
                    "business_id": str(payout.business_id),
                    "commission_count": str(payout.commission_count),
                },
                idempotency_key=payout_key(payout.id),
            )
        except GatewayUnavailable:
            logger.warning(f"Transfer for payout {payout.id} did not complete, left PROCESSING")
            raise

        if result.success:
            return await self._mark_succeeded(payout.id, result)
        return await self._mark_failed(payout.id, result)

    @staticmethod
    async def _lock_payout(db, payout_id: UUID) -> Payout:
        result = await db.execute(select(Payout).where(Payout.id == payout_id).with_for_update())
        return result.scalar_one()

    async def _mark_succeeded(self, payout_id: UUID, result: TransferResult) -> Payout:
        processed_at = datetime.now(UTC)
        async with self.store.transaction() as db:
            payout = await self._lock_payout(db, payout_id)
            if payout.status == PayoutStatus.SUCCEEDED:
                return payout
            assert_payout_transition(payout.status, PayoutStatus.SUCCEEDED)

            payout.status = PayoutStatus.SUCCEEDED.value
            payout.transfer_id = result.transfer_id
            payout.processed_at = processed_at

            updated = await db.execute(
                update(Commission)
                .where(
                    Commission.payout_id == payout.id,
                    Commission.status == CommissionStatus.PENDING.value,
                )
                .values(
                    status=CommissionStatus.PROCESSED.value,
                    processed_at=processed_at,
                    transfer_id=result.transfer_id,
                )
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount != payout.commission_count:
                raise ReconciliationFailed(
                    f"Payout {payout.id} expected {payout.commission_count} commissions, "
                    f"found {updated.rowcount}"
                )

        logger.info(f"Payout {payout_id} succeeded with transfer {result.transfer_id}")
        return payout

    async def _mark_failed(self, payout_id: UUID, result: TransferResult) -> Payout:
        async with self.store.transaction() as db:
            payout = await self._lock_payout(db, payout_id)
            if payout.status == PayoutStatus.FAILED:
                return payout
            assert_payout_transition(payout.status, PayoutStatus.FAILED)

            payout.status = PayoutStatus.FAILED.value
            payout.failure_reason = result.error_message or "Transfer rejected"
            payout.processed_at = datetime.now(UTC)

            # Members stay PENDING and become eligible for the next run
            await db.execute(
                update(Commission)
                .where(
                    Commission.payout_id == payout.id,
                    Commission.status == CommissionStatus.PENDING.value,
                )
                .values(payout_id=None)
                .execution_options(synchronize_session=False)
            )

        logger.warning(f"Payout {payout_id} failed: {payout.failure_reason}")
        return payout

    # ==================== SCHEDULED ====================

    async def owners_with_pending(self) -> list[UUID]:
        async with self.store.session() as db:
            result = await db.execute(
                select(Commission.business_id)
                .where(
                    Commission.status == CommissionStatus.PENDING.value,
                    Commission.payout_id.is_(None),
                )
                .group_by(Commission.business_id)
            )
            return list(result.scalars().all())

    async def stale_processing(self, older_than: timedelta) -> list[UUID]:
        cutoff = datetime.now(UTC) - older_than
        async with self.store.session() as db:
            result = await db.execute(
                select(Payout.id).where(
                    Payout.status == PayoutStatus.PROCESSING.value,
                    Payout.created_at < cutoff,
                )
            )
            return list(result.scalars().all())

    async def run_scheduled_payouts(self) -> dict[str, int]:
        """Resume stuck payouts, then pay every owner with pending commissions.

        Failures for one owner are logged and do not stop the others.
        """
        summary = {"resumed": 0, "succeeded": 0, "failed": 0, "skipped": 0, "errors": 0}

        for payout_id in await self.stale_processing(
            timedelta(minutes=settings.payout_resume_after_minutes)
        ):
            try:
                payout = await self.resume_payout(payout_id)
                summary["resumed"] += 1
                summary["succeeded" if payout.status == PayoutStatus.SUCCEEDED else "failed"] += 1
            except AppException as e:
                logger.warning(f"Could not resume payout {payout_id}: {e.detail}")
                summary["errors"] += 1

        for business_id in await self.owners_with_pending():
            try:
                payout = await self.run_payout(business_id)
                summary["succeeded" if payout.status == PayoutStatus.SUCCEEDED else "failed"] += 1
            except (NothingToPayout, PayeeNotReady) as e:
                logger.info(f"Skipping payout for {business_id}: {e.detail}")
                summary["skipped"] += 1
            except AppException as e:
                logger.warning(f"Payout for {business_id} not completed: {e.detail}")
                summary["errors"] += 1

        logger.info(f"Scheduled payouts finished: {summary}")
        return summary
