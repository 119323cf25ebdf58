"""Commission calculation."""

from decimal import Decimal

import pytest

from settlement_core.core.exceptions import ValidationError
from settlement_core.services.commission_service import CommissionService


def test_ten_percent_of_booking_amount():
    quote = CommissionService().compute_commission(Decimal("400.00"), "usd")
    assert quote.amount == Decimal("40.00")
    assert quote.rate == Decimal("0.10")
    assert quote.currency == "USD"


def test_rounds_half_up_to_minor_unit():
    quote = CommissionService().compute_commission(Decimal("0.05"), "USD")
    assert quote.amount == Decimal("0.01")


def test_zero_decimal_currency():
    quote = CommissionService().compute_commission(Decimal("12345"), "JPY")
    assert quote.amount == Decimal("1235")


def test_three_decimal_currency_keeps_third_place():
    quote = CommissionService().compute_commission(Decimal("12.345"), "bhd")
    assert quote.amount == Decimal("1.235")
    assert quote.currency == "BHD"


def test_rate_override_is_snapshotted():
    quote = CommissionService(rate=Decimal("0.15")).compute_commission(Decimal("255.00"), "EUR")
    assert quote.amount == Decimal("38.25")
    assert quote.rate == Decimal("0.15")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00")])
def test_rejects_non_positive_amount(amount):
    with pytest.raises(ValidationError):
        CommissionService().compute_commission(amount, "USD")


@pytest.mark.parametrize("rate", [Decimal("0"), Decimal("1.5")])
def test_rejects_rate_out_of_range(rate):
    with pytest.raises(ValidationError):
        CommissionService(rate=rate)
