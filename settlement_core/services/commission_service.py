"""Commission calculation service.

The platform keeps a flat share of every paid booking, 10% by default. The
rate is snapshotted on each commission so later rate changes never alter
commissions already owed.
"""

from dataclasses import dataclass
from decimal import Decimal

from settlement_core.config import settings
from settlement_core.core.exceptions import ValidationError
from settlement_core.domain.money import assert_positive_amount, normalize_currency, quantize


@dataclass(frozen=True)
class CommissionQuote:
    amount: Decimal
    rate: Decimal
    currency: str


class CommissionService:
    """Service for calculating booking commissions."""

    def __init__(self, rate: Decimal | None = None):
        self.rate = Decimal(str(rate if rate is not None else settings.commission_rate))
        self._assert_rate(self.rate)

    @staticmethod
    def _assert_rate(rate: Decimal) -> None:
        if not (Decimal("0") < rate <= Decimal("1")):
            raise ValidationError(f"Commission rate must be in (0, 1], got {rate}")

    def compute_commission(
        self,
        amount: Decimal,
        currency: str,
        rate: Decimal | None = None,
    ) -> CommissionQuote:
        """Calculate the commission on a booking amount.

        Args:
            amount: Booking amount in major units
            currency: Booking currency
            rate: Override of the configured rate

        Returns:
            CommissionQuote: amount rounded half-up to the currency's minor unit

        Raises:
            ValidationError: If amount is not positive or rate is out of range
        """
        assert_positive_amount(amount, "Commission base")
        rate = self.rate if rate is None else Decimal(str(rate))
        self._assert_rate(rate)
        currency = normalize_currency(currency)
        return CommissionQuote(
            amount=quantize(Decimal(amount) * rate, currency),
            rate=rate,
            currency=currency,
        )


commission_service = CommissionService()
