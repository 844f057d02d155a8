"""Currency amounts and minor-unit arithmetic for cart totals."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)

# en-CA display symbols; anything else is shown with its ISO code
CURRENCY_SYMBOLS = {
    "CAD": "$",
    "USD": "US$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AUD": "A$",
}


def currency_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def parse_amount(value: Any) -> Decimal:
    """Parse a backend decimal string; malformed values count as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning("Unparseable money amount %r, using 0", value)
        return Decimal("0")
    if not amount.is_finite():
        logger.warning("Non-finite money amount %r, using 0", value)
        return Decimal("0")
    return amount


@dataclass(frozen=True, slots=True)
class Money:
    """Amount in a single currency."""

    amount: Decimal
    currency: str

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(Decimal("0"), currency.upper())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, default_currency: str = "") -> Money:
        """Build from the Storefront `MoneyV2` shape ({amount, currencyCode})."""
        data = data or {}
        currency = str(data.get("currencyCode") or data.get("currency") or default_currency)
        return cls(parse_amount(data.get("amount")), currency.upper())

    def to_dict(self) -> dict[str, str]:
        return {"amount": str(self.amount), "currencyCode": self.currency}

    def to_minor_units(self) -> int:
        exponent = currency_exponent(self.currency)
        scaled = (self.amount * (Decimal(10) ** exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(scaled)

    @classmethod
    def from_minor_units(cls, units: int, currency: str) -> Money:
        exponent = currency_exponent(currency)
        return cls(Decimal(units).scaleb(-exponent), currency.upper())

    def multiply(self, quantity: int) -> Money:
        return Money.from_minor_units(self.to_minor_units() * int(quantity), self.currency)

    @classmethod
    def sum(cls, values: Iterable[Money], currency: str) -> Money:
        """Add amounts in minor units and label the result with `currency`.

        Amounts in other currencies are added by face value, without conversion.
        """
        currency = currency.upper()
        units = sum(cls(value.amount, currency).to_minor_units() for value in values)
        return cls.from_minor_units(units, currency)

    def format(self) -> str:
        exponent = currency_exponent(self.currency)
        number = f"{self.amount:,.{exponent}f}"
        symbol = CURRENCY_SYMBOLS.get(self.currency)
        if symbol:
            return f"{symbol}{number}"
        return f"{self.currency} {number}"

    def __str__(self) -> str:
        return self.format()
