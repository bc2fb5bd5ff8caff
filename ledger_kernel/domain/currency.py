"""
Currency -- ISO 4217 minor units and the ledger's money rounding rule.

Every monetary amount that becomes a journal line goes through
``round_money`` first.  Rounding happens per computed amount (line net,
line tax, COGS per line, depreciation per period), and the balance check
runs on the rounded amounts.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """A single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal("0.01")."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of ISO 4217 currencies and their decimal places."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "ZAR": CurrencyInfo("ZAR", 2, "South African Rand"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "NGN": CurrencyInfo("NGN", 2, "Nigerian Naira"),
        "KES": CurrencyInfo("KES", 2, "Kenyan Shilling"),
        # Zero decimal currencies
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "CLP": CurrencyInfo("CLP", 0, "Chilean Peso"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "ISK": CurrencyInfo("ISK", 0, "Icelandic Krona"),
        "UGX": CurrencyInfo("UGX", 0, "Ugandan Shilling"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "TND": CurrencyInfo("TND", 3, "Tunisian Dinar"),
    }

    # Unknown but well-formed codes round like USD
    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code.

        Raises:
            ValueError: If the code is not a three-letter code.
        """
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError(f"Currency code must be 3 letters: {code!r}")

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())


def round_money(
    amount: Decimal | int | str,
    currency: str = "USD",
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round ``amount`` to the currency's minor unit.

    >>> round_money(Decimal("10.005"))
    Decimal('10.01')
    >>> round_money(Decimal("1234.5"), "JPY")
    Decimal('1235')
    """
    places = CurrencyRegistry.get_decimal_places(currency)
    return Decimal(amount).quantize(Decimal(1).scaleb(-places), rounding=rounding)
