"""Stripe payment gateway adapter."""

import json
import logging
from decimal import Decimal

import stripe

from settlement_core.config import settings
from settlement_core.core.exceptions import (
    GatewayUnavailable,
    IntentConflict,
    InvalidSignature,
    MalformedPayload,
    NotFoundError,
    ValidationError,
)
from settlement_core.domain.money import from_minor_units, to_minor_units
from settlement_core.gateways.base import (
    GatewayEvent,
    GatewayEventKind,
    GatewayType,
    PaymentGateway,
    PaymentIntent,
    TransferResult,
)

logger = logging.getLogger(__name__)

EVENT_KINDS = {
    "payment_intent.succeeded": GatewayEventKind.SUCCEEDED,
    "payment_intent.payment_failed": GatewayEventKind.FAILED,
}

# Errors where Stripe may or may not have acted; the caller must retry
TRANSIENT_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
    stripe.AuthenticationError,
)


def _to_intent(intent) -> PaymentIntent:
    currency = intent["currency"].upper()
    return PaymentIntent(
        id=intent["id"],
        amount=from_minor_units(intent["amount"], currency),
        currency=currency,
        status=intent["status"],
        client_secret=intent.get("client_secret"),
        metadata={str(k): str(v) for k, v in (intent.get("metadata") or {}).items()},
    )


class StripeGateway(PaymentGateway):
    """Stripe payment gateway implementation."""

    signature_header = "Stripe-Signature"

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.timeout_seconds = timeout_seconds or settings.gateway_timeout_seconds
        stripe.max_network_retries = settings.gateway_max_network_retries

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    def _require_key(self) -> str:
        if not self.secret_key:
            raise GatewayUnavailable("stripe", "not configured")
        return self.secret_key

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        description: str | None = None,
    ) -> PaymentIntent:
        """Create Stripe PaymentIntent."""
        api_key = self._require_key()
        try:
            intent = await self._bounded(
                stripe.PaymentIntent.create,
                amount=to_minor_units(amount, currency),
                currency=currency.lower(),
                description=description,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
                api_key=api_key,
            )
        except stripe.IdempotencyError as e:
            raise IntentConflict(f"Payment intent key reused with different parameters: {e.user_message or e}")
        except TRANSIENT_ERRORS as e:
            raise GatewayUnavailable("stripe", str(e)) from e
        except stripe.StripeError as e:
            raise ValidationError(f"Payment gateway rejected the intent: {e.user_message or e}")

        logger.info(f"Created Stripe intent {intent['id']} key={idempotency_key}")
        return _to_intent(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Retrieve Stripe PaymentIntent."""
        api_key = self._require_key()
        try:
            intent = await self._bounded(stripe.PaymentIntent.retrieve, intent_id, api_key=api_key)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                raise NotFoundError("Payment intent", intent_id)
            raise ValidationError(f"Payment gateway rejected the lookup: {e.user_message or e}")
        except TRANSIENT_ERRORS as e:
            raise GatewayUnavailable("stripe", str(e)) from e
        except stripe.StripeError as e:
            raise ValidationError(f"Payment gateway rejected the lookup: {e.user_message or e}")

        return _to_intent(intent)

    async def create_transfer(
        self,
        destination: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> TransferResult:
        """Transfer to a Stripe Connect account."""
        api_key = self._require_key()
        try:
            transfer = await self._bounded(
                stripe.Transfer.create,
                amount=to_minor_units(amount, currency),
                currency=currency.lower(),
                destination=destination,
                metadata=metadata,
                idempotency_key=idempotency_key,
                api_key=api_key,
            )
        except TRANSIENT_ERRORS as e:
            raise GatewayUnavailable("stripe", str(e)) from e
        except stripe.StripeError as e:
            logger.warning(f"Stripe transfer rejected key={idempotency_key}: {e}")
            return TransferResult(success=False, error_message=e.user_message or str(e))

        return TransferResult(
            success=True,
            transfer_id=transfer["id"],
            raw_response={"id": transfer["id"], "destination": destination},
        )

    def parse_webhook(
        self,
        payload: bytes,
        signature: str | None,
    ) -> GatewayEvent | None:
        """Verify Stripe webhook signature and map the event."""
        if not self.webhook_secret:
            raise GatewayUnavailable("stripe", "webhook secret not configured")
        if not signature:
            raise InvalidSignature("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature() from e
        except UnicodeDecodeError as e:
            raise MalformedPayload() from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise MalformedPayload() from e

        try:
            event_type = event["type"]
            data = event["data"]["object"]
            kind = EVENT_KINDS.get(event_type)
            if kind is None:
                logger.debug(f"Ignoring Stripe event type {event_type}")
                return None

            failure_message = None
            if kind == GatewayEventKind.FAILED and data.get("last_payment_error"):
                failure_message = data["last_payment_error"].get("message")

            return GatewayEvent(
                kind=kind,
                intent_id=data["id"],
                event_id=event.get("id"),
                metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
                failure_message=failure_message,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedPayload() from e
