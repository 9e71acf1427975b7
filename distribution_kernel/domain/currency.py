"""Currency -- ISO 4217 codes used by the distribution network and their minor units."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from distribution_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount (1 for zero-decimal currencies)."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies a location may trade in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Zero decimal
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "CLP": CurrencyInfo("CLP", 0, "Chilean Peso"),
        "ISK": CurrencyInfo("ISK", 0, "Icelandic Krona"),
        "PYG": CurrencyInfo("PYG", 0, "Paraguayan Guarani"),
        "UGX": CurrencyInfo("UGX", 0, "Ugandan Shilling"),
        # Two decimal
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "KHR": CurrencyInfo("KHR", 2, "Cambodian Riel"),
        "LAK": CurrencyInfo("LAK", 2, "Lao Kip"),
        "MMK": CurrencyInfo("MMK", 2, "Myanmar Kyat"),
        "MNT": CurrencyInfo("MNT", 2, "Mongolian Tugrik"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "TWD": CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        # Three decimal
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get(cls, code: str) -> CurrencyInfo:
        """
        Look up a currency.

        Raises:
            InvalidCurrencyError: if the code is not registered.
        """
        info = cls._CURRENCIES.get(code)
        if info is None:
            raise InvalidCurrencyError(code)
        return info

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)


def normalize_currency(code: str) -> str:
    """Upper-case and validate a currency code.

    Raises:
        InvalidCurrencyError: if the code is not a registered ISO 4217 code.
    """
    normalized = (code or "").strip().upper()
    CurrencyRegistry.get(normalized)
    return normalized
