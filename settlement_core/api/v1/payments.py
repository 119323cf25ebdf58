"""Payment intent endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from settlement_core.api.deps import CurrentUser, get_payment_service
from settlement_core.gateways.base import PaymentIntent
from settlement_core.schemas.payment import PaymentIntentCreate, PaymentIntentResponse
from settlement_core.services.payment_service import PaymentService

router = APIRouter()

Payments = Annotated[PaymentService, Depends(get_payment_service)]


def _to_response(intent: PaymentIntent) -> PaymentIntentResponse:
    booking_id = intent.metadata.get("booking_id")
    return PaymentIntentResponse(
        intent_id=intent.id,
        client_secret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
        status=intent.status,
        booking_id=booking_id,
    )


@router.post("/intents", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentCreate,
    current_user: CurrentUser,
    payments: Payments,
) -> PaymentIntentResponse:
    """Create the booking's payment intent, or return the existing one."""
    intent = await payments.create_or_retrieve_intent(
        booking_id=request.booking_id,
        payer=current_user,
        amount=request.amount,
        currency=request.currency,
    )
    return _to_response(intent)


@router.get("/intents/{intent_id}", response_model=PaymentIntentResponse)
async def get_payment_intent(
    intent_id: str,
    current_user: CurrentUser,
    payments: Payments,
) -> PaymentIntentResponse:
    intent = await payments.retrieve_intent(intent_id, current_user)
    return _to_response(intent)
