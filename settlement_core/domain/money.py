"""Money helpers.

Amounts are Decimals in major units everywhere inside the service. Gateways
receive integer minor units.
"""

from decimal import ROUND_HALF_UP, Decimal

from settlement_core.core.exceptions import ValidationError

# ISO-4217 exponents that differ from the default of 2
CURRENCY_EXPONENTS = {
    "BIF": 0,
    "CLP": 0,
    "JPY": 0,
    "KRW": 0,
    "PYG": 0,
    "VND": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "JOD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}


def normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code: {currency!r}")
    return code


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency.upper(), 2)


def quantize(amount: Decimal, currency: str) -> Decimal:
    """Round to the currency's minor unit, half away from zero."""
    exponent = Decimal(1).scaleb(-currency_exponent(currency))
    return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str) -> int:
    return int(quantize(amount, currency).scaleb(currency_exponent(currency)))


def from_minor_units(amount: int, currency: str) -> Decimal:
    return quantize(Decimal(amount).scaleb(-currency_exponent(currency)), currency)


def assert_positive_amount(amount: Decimal, context: str) -> None:
    """Guard: Prevent negative or zero amounts."""
    if amount is None or amount <= 0:
        raise ValidationError(f"{context}: amount must be positive, got {amount}")
