"""Webhook endpoints for payment gateways.

Responses drive the gateway's redelivery: 400 for bad signatures or bodies
(never redelivered usefully), 503 for transient failures (redelivered), and
200 for everything applied or deliberately dropped.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from settlement_core.api.deps import get_gateway_service, get_settlement_service
from settlement_core.core.exceptions import BookingNotFound
from settlement_core.schemas.payment import WebhookAck
from settlement_core.services.gateway_service import GatewayService
from settlement_core.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{gateway_name}", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def gateway_webhook(
    gateway_name: str,
    request: Request,
    gateways: Annotated[GatewayService, Depends(get_gateway_service)],
    settlement: Annotated[SettlementService, Depends(get_settlement_service)],
) -> WebhookAck:
    """Verify and apply a payment outcome delivered by a gateway."""
    gateway = gateways.get(gateway_name)

    # Raw body for signature verification
    payload = await request.body()
    event = gateway.parse_webhook(payload, request.headers.get(gateway.signature_header))
    if event is None:
        return WebhookAck(outcome="unhandled")

    try:
        result = await settlement.handle_gateway_event(event)
    except BookingNotFound as e:
        logger.warning(f"Dropping {gateway_name} event {event.event_id}: {e.detail}")
        return WebhookAck(outcome="not_found")

    return WebhookAck(outcome=result.outcome.value, booking_id=result.booking_id)
