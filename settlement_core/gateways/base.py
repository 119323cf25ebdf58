"""Base payment gateway interface.

All gateway adapters must implement this interface.
Business logic should NOT live in adapters - only gateway communication.

Amounts cross this interface as Decimals in major units; adapters convert to
the gateway's minor units. A gateway that does not answer within
``timeout_seconds`` raises GatewayUnavailable, which is never an outcome.
"""

import asyncio
import functools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from settlement_core.core.exceptions import GatewayUnavailable


class GatewayType(str, Enum):
    """Supported payment gateways."""

    STRIPE = "stripe"
    MANUAL = "manual"


class GatewayEventKind(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class PaymentIntent:
    """A gateway-side payment intent."""

    id: str
    amount: Decimal
    currency: str
    status: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class TransferResult:
    """Definitive result of a transfer to a connected account."""

    success: bool
    transfer_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class GatewayEvent:
    """Verified webhook event the settlement core acts on."""

    kind: GatewayEventKind
    intent_id: str
    event_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    failure_message: str | None = None


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    timeout_seconds: float = 10.0
    signature_header: str = "X-Webhook-Signature"

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""

    async def _bounded(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking SDK call in a worker thread under the gateway timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(functools.partial(func, *args, **kwargs)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GatewayUnavailable(
                self.gateway_type.value, f"no response within {self.timeout_seconds}s"
            ) from e

    @abstractmethod
    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        description: str | None = None,
    ) -> PaymentIntent:
        """Create a payment intent.

        Args:
            amount: Amount in major units
            currency: ISO-4217 code
            metadata: Booking reference carried back on webhooks
            idempotency_key: Same key, same intent
            description: Shown on the payer's statement page

        Raises:
            GatewayUnavailable: Transport failure or timeout
            IntentConflict: Key reused with different parameters
        """

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch an existing intent.

        Raises:
            GatewayUnavailable: Transport failure or timeout
            NotFoundError: Unknown intent id
        """

    @abstractmethod
    async def create_transfer(
        self,
        destination: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> TransferResult:
        """Transfer funds to a connected account.

        Returns a failed TransferResult only when the gateway definitively
        rejected the transfer.

        Raises:
            GatewayUnavailable: Outcome unknown (transport failure or timeout)
        """

    @abstractmethod
    def parse_webhook(
        self,
        payload: bytes,
        signature: str | None,
    ) -> GatewayEvent | None:
        """Verify webhook signature and parse payload.

        Returns:
            GatewayEvent for payment outcomes, None for event types
            the settlement core does not act on

        Raises:
            InvalidSignature: Signature missing or wrong
            MalformedPayload: Body is not a well-formed event
        """
