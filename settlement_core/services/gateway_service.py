"""Payment gateway service.

Routes gateway operations to the configured adapter.
No business logic here - only gateway selection and environment safety.
"""

import logging

from settlement_core.config import settings
from settlement_core.core.exceptions import NotFoundError
from settlement_core.gateways.base import GatewayType, PaymentGateway
from settlement_core.gateways.manual import ManualGateway
from settlement_core.gateways.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def _is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def _assert_gateway_allowed(gateway_type: GatewayType) -> None:
    """Block the sandbox gateway in production.

    Raises:
        RuntimeError: If the manual gateway is selected in production
    """
    if gateway_type == GatewayType.MANUAL and _is_production():
        raise RuntimeError(
            "Cannot use the manual sandbox gateway in production. "
            "Set PAYMENT_GATEWAY=stripe."
        )


class GatewayService:
    """Holds one adapter per gateway type."""

    def __init__(self, gateways: dict[GatewayType, PaymentGateway] | None = None):
        self._gateways: dict[GatewayType, PaymentGateway] = dict(gateways or {})

    def get(self, gateway_type: str | GatewayType) -> PaymentGateway:
        """Get or create gateway instance."""
        if isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type.lower())
            except ValueError:
                raise NotFoundError("Payment gateway", gateway_type)

        _assert_gateway_allowed(gateway_type)

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.STRIPE:
                self._gateways[gateway_type] = StripeGateway()
            else:
                self._gateways[gateway_type] = ManualGateway()
            logger.info(f"Initialised {gateway_type.value} gateway")

        return self._gateways[gateway_type]

    @property
    def default(self) -> PaymentGateway:
        """Gateway used for new intents and transfers."""
        return self.get(settings.payment_gateway)


# Singleton instance
gateway_service = GatewayService()
