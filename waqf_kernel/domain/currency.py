"""Currency -- ISO 4217 registry and minor-unit precision."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_per_major(self) -> int:
        """Number of minor units in one major unit (SAR -> 100, KWD -> 1000)."""
        return 10 ** self.decimal_places


class CurrencyRegistry:
    """Registry of ISO 4217 currencies with their minor-unit exponent."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Gulf and regional
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "QAR": CurrencyInfo("QAR", 2, "Qatari Riyal"),
        "EGP": CurrencyInfo("EGP", 2, "Egyptian Pound"),
        "MAD": CurrencyInfo("MAD", 2, "Moroccan Dirham"),
        "TRY": CurrencyInfo("TRY", 2, "Turkish Lira"),
        "PKR": CurrencyInfo("PKR", 2, "Pakistani Rupee"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "IQD": CurrencyInfo("IQD", 3, "Iraqi Dinar"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "LYD": CurrencyInfo("LYD", 3, "Libyan Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "TND": CurrencyInfo("TND", 3, "Tunisian Dinar"),
        # Majors
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        # Zero decimal currencies
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check whether a currency code is registered."""
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Decimal places for the currency; unknown codes raise KeyError."""
        return cls._CURRENCIES[code].decimal_places

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
