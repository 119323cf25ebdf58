"""Celery background tasks for commission payouts."""

import asyncio
import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task

from settlement_core.config import settings
from settlement_core.core.exceptions import AppException
from settlement_core.database import LedgerStore
from settlement_core.services.gateway_service import gateway_service
from settlement_core.services.payout_service import PayoutService

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def _payout_service(store: LedgerStore) -> PayoutService:
    return PayoutService(store, gateway_service.default)


async def _with_store(action):
    # Each task run gets its own engine bound to its own event loop
    store = LedgerStore.from_url(settings.database_url)
    try:
        return await action(_payout_service(store))
    finally:
        await store.dispose()


@shared_task(bind=True, max_retries=3)
def process_commission_payouts(self):
    """Pay out every business owner with pending commissions.

    Runs daily at the configured payout hour.
    """
    try:
        summary = run_async(_with_store(lambda payouts: payouts.run_scheduled_payouts()))
        return {"status": "success", **summary}
    except Exception as exc:
        logger.exception("Scheduled payout run failed")
        raise self.retry(exc=exc, countdown=300)


@shared_task(bind=True, max_retries=3)
def run_owner_payout(self, business_id: str, currency: str | None = None):
    """Pay out one owner in the background (admin bulk actions)."""
    try:
        payout = run_async(
            _with_store(lambda payouts: payouts.run_payout(UUID(business_id), currency))
        )
        return {"status": payout.status, "payout_id": str(payout.id)}
    except Exception as exc:
        if getattr(exc, "retryable", False):
            raise self.retry(exc=exc, countdown=60)
        raise


async def _resume_stuck(payouts: PayoutService) -> dict:
    resumed = []
    for payout_id in await payouts.stale_processing(
        timedelta(minutes=settings.payout_resume_after_minutes)
    ):
        try:
            payout = await payouts.resume_payout(payout_id)
        except AppException as e:
            logger.warning(f"Could not resume payout {payout_id}: {e.detail}")
            continue
        resumed.append({"payout_id": str(payout.id), "status": payout.status})
    return {"resumed": resumed}


@shared_task(bind=True, max_retries=3)
def resume_stuck_payouts(self):
    """Re-send transfers for payouts left PROCESSING by a gateway timeout."""
    try:
        return {"status": "success", **run_async(_with_store(_resume_stuck))}
    except Exception as exc:
        logger.exception("Resuming stuck payouts failed")
        raise self.retry(exc=exc, countdown=120)
