"""Manual sandbox gateway.

Keeps intents and transfers in memory and signs webhooks with HMAC-SHA256.
Used for local development, demos and tests; never in production.
"""

import hashlib
import hmac
import json
import logging
import uuid
from decimal import Decimal

from settlement_core.config import settings
from settlement_core.core.exceptions import (
    GatewayUnavailable,
    IntentConflict,
    InvalidSignature,
    MalformedPayload,
    NotFoundError,
)
from settlement_core.domain.money import quantize
from settlement_core.gateways.base import (
    GatewayEvent,
    GatewayEventKind,
    GatewayType,
    PaymentGateway,
    PaymentIntent,
    TransferResult,
)

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    GatewayEventKind.SUCCEEDED: "payment_intent.succeeded",
    GatewayEventKind.FAILED: "payment_intent.payment_failed",
}


class ManualGateway(PaymentGateway):
    """In-memory gateway with signed webhooks.

    ``transfer_failure`` makes transfers fail definitively with that reason;
    ``unavailable`` makes every call raise GatewayUnavailable.
    """

    signature_header = "X-Webhook-Signature"

    def __init__(self, webhook_secret: str | None = None):
        self.webhook_secret = webhook_secret or settings.manual_webhook_secret
        self.intents: dict[str, PaymentIntent] = {}
        self.transfers: dict[str, dict] = {}
        self._intent_keys: dict[str, tuple[str, tuple]] = {}
        self._transfer_keys: dict[str, str] = {}
        self.transfer_failure: str | None = None
        self.unavailable = False
        self.calls: list[str] = []

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    def _check_available(self, operation: str) -> None:
        self.calls.append(operation)
        if self.unavailable:
            raise GatewayUnavailable(self.gateway_type.value, "sandbox marked unavailable")

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        description: str | None = None,
    ) -> PaymentIntent:
        self._check_available("create_intent")
        params = (str(quantize(amount, currency)), currency.upper(), tuple(sorted(metadata.items())))

        if idempotency_key in self._intent_keys:
            intent_id, seen_params = self._intent_keys[idempotency_key]
            if seen_params != params:
                raise IntentConflict("Payment intent key reused with different parameters")
            return self.intents[intent_id]

        intent = PaymentIntent(
            id=f"pi_manual_{uuid.uuid4().hex[:16]}",
            amount=quantize(amount, currency),
            currency=currency.upper(),
            status="requires_payment_method",
            client_secret=f"manual_secret_{uuid.uuid4().hex}",
            metadata=dict(metadata),
        )
        self.intents[intent.id] = intent
        self._intent_keys[idempotency_key] = (intent.id, params)
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self._check_available("retrieve_intent")
        intent = self.intents.get(intent_id)
        if intent is None:
            raise NotFoundError("Payment intent", intent_id)
        return intent

    async def create_transfer(
        self,
        destination: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> TransferResult:
        self._check_available("create_transfer")

        if idempotency_key in self._transfer_keys:
            transfer_id = self._transfer_keys[idempotency_key]
            return TransferResult(success=True, transfer_id=transfer_id, raw_response=self.transfers[transfer_id])

        if self.transfer_failure:
            return TransferResult(success=False, error_message=self.transfer_failure)

        transfer_id = f"tr_manual_{uuid.uuid4().hex[:16]}"
        self.transfers[transfer_id] = {
            "id": transfer_id,
            "destination": destination,
            "amount": str(quantize(amount, currency)),
            "currency": currency.upper(),
            "metadata": dict(metadata),
        }
        self._transfer_keys[idempotency_key] = transfer_id
        return TransferResult(success=True, transfer_id=transfer_id, raw_response=self.transfers[transfer_id])

    # ==================== WEBHOOKS ====================

    def sign(self, payload: bytes) -> str:
        return hmac.new(self.webhook_secret.encode(), payload, hashlib.sha256).hexdigest()

    def build_event(
        self,
        intent_id: str,
        kind: GatewayEventKind,
        metadata: dict[str, str] | None = None,
    ) -> tuple[bytes, str]:
        """Signed webhook body for an intent, as the sandbox would deliver it."""
        intent = self.intents.get(intent_id)
        if metadata is None:
            metadata = intent.metadata if intent else {}
        if intent is not None:
            intent.status = "succeeded" if kind == GatewayEventKind.SUCCEEDED else "requires_payment_method"

        body = {
            "id": f"evt_manual_{uuid.uuid4().hex[:16]}",
            "type": EVENT_TYPES[kind],
            "data": {"object": {"id": intent_id, "metadata": metadata}},
        }
        payload = json.dumps(body).encode()
        return payload, self.sign(payload)

    def parse_webhook(
        self,
        payload: bytes,
        signature: str | None,
    ) -> GatewayEvent | None:
        if not signature or not hmac.compare_digest(self.sign(payload), signature):
            raise InvalidSignature()

        try:
            body = json.loads(payload)
            event_type = body["type"]
            data = body["data"]["object"]
            kinds = {v: k for k, v in EVENT_TYPES.items()}
            kind = kinds.get(event_type)
            if kind is None:
                return None
            return GatewayEvent(
                kind=kind,
                intent_id=data["id"],
                event_id=body.get("id"),
                metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise MalformedPayload() from e
