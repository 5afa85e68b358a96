"""Currency -- supported currencies and precision-derived rounding."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single supported currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def rounding_tolerance(self) -> Decimal:
        """Smallest representable unit, e.g. 0.01 for two decimals."""
        if self.decimal_places == 0:
            return Decimal("1")
        return Decimal("0." + "0" * (self.decimal_places - 1) + "1")

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """
    Registry of the currencies the studio keeps ledgers in.

    Cash boxes hold ARS and USD as independent ledgers; nothing else is
    accepted at the boundary.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "ARS": CurrencyInfo("ARS", 2, "Peso argentino"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        info = cls._CURRENCIES.get(code)
        return info.rounding_tolerance if info else Decimal("0.01")

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
