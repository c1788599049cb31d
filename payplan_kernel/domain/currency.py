"""
Currency -- the ISO 4217 codes payplan accepts and their minor units.

Every Money amount is rounded (when the caller asks) and split into
installment shares in steps of its currency's minor unit: 0.01 for PHP,
1 for JPY, 0.001 for KWD. The minor unit is derived from the number of
decimal places and is the only precision rule in the system.
"""

from dataclasses import dataclass
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
)
from typing import ClassVar

# Amount arithmetic runs in this context. Results are never cut to the
# default 28 significant digits; only an explicit quantize rounds.
EXACT_CONTEXT = Context(
    prec=MAX_PREC,
    Emax=MAX_EMAX,
    Emin=MIN_EMIN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


@dataclass(frozen=True)
class CurrencyInfo:
    """Registry entry for one currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest amount this currency can express (``10 ** -decimal_places``)."""
        return Decimal(1).scaleb(-self.decimal_places)

    def quantize(self, amount: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
        return amount.quantize(self.minor_unit, rounding=rounding, context=EXACT_CONTEXT)


def _normalize(code: object) -> str | None:
    if not isinstance(code, str):
        return None
    return code.strip().upper() or None


_TABLE: tuple[tuple[str, int, str], ...] = (
    # Operating currency and its neighbours
    ("PHP", 2, "Philippine Peso"),
    ("SGD", 2, "Singapore Dollar"),
    ("MYR", 2, "Malaysian Ringgit"),
    ("IDR", 2, "Indonesian Rupiah"),
    ("THB", 2, "Thai Baht"),
    ("VND", 0, "Vietnamese Dong"),
    ("HKD", 2, "Hong Kong Dollar"),
    ("CNY", 2, "Chinese Yuan"),
    ("JPY", 0, "Japanese Yen"),
    ("KRW", 0, "South Korean Won"),
    # Remittance corridors
    ("USD", 2, "US Dollar"),
    ("EUR", 2, "Euro"),
    ("GBP", 2, "Pound Sterling"),
    ("CAD", 2, "Canadian Dollar"),
    ("AUD", 2, "Australian Dollar"),
    ("AED", 2, "UAE Dirham"),
    ("SAR", 2, "Saudi Riyal"),
    ("QAR", 2, "Qatari Riyal"),
    ("BHD", 3, "Bahraini Dinar"),
    ("KWD", 3, "Kuwaiti Dinar"),
    ("OMR", 3, "Omani Rial"),
)


class CurrencyRegistry:
    """Lookup table of supported currencies, keyed by upper-case code."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        code: CurrencyInfo(code, places, name) for code, places, name in _TABLE
    }

    # Used only when asked about a code that is not registered
    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def get_info(cls, code: object) -> CurrencyInfo | None:
        normalized = _normalize(code)
        return cls._CURRENCIES.get(normalized) if normalized else None

    @classmethod
    def is_valid(cls, code: object) -> bool:
        return cls.get_info(code) is not None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return cls.DEFAULT_DECIMAL_PLACES if info is None else info.decimal_places

    @classmethod
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        """One minor unit of ``code`` (the default precision for unknown codes)."""
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def validate(cls, code: object) -> str:
        """
        Return the normalized code.

        Raises:
            ValueError: if ``code`` is not a registered three-letter code.
        """
        normalized = _normalize(code)
        if normalized is None:
            raise ValueError(f"Invalid currency code: {code!r}")
        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")
        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
