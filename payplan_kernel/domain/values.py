"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides Currency and Money, the only types used for amounts anywhere
    in payplan. Installment balances, payment amounts, and allocation
    results are all Money; raw Decimal appears only inside these types.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other module. No outward dependencies except
    payplan_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Amounts are Decimal, never float. Exact arithmetic is what lets the
      allocator guarantee that applied + unapplied == paid to the cent.
    - Addition, subtraction, negation and multiplication are exact at any
      magnitude (EXACT_CONTEXT), not limited to 28 significant digits.
    - Currency codes are validated against CurrencyRegistry at construction.
    - Arithmetic and comparison refuse to mix currencies.

Failure modes:
    - ValueError on construction with invalid amounts or currencies.
    - TypeError when Money.of receives a float.
    - ValueError when arithmetic or comparison mixes currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from functools import total_ordering

from payplan_kernel.domain.currency import EXACT_CONTEXT, CurrencyInfo, CurrencyRegistry

# Significant digits a quotient keeps beyond those of the dividend
_DIVISION_EXTRA_DIGITS = 28


@dataclass(frozen=True, slots=True)
class Currency:
    """
    Currency of a schedule or payment.

    Contract:
        Built from any spelling of a registered code (" php " works) and
        stores the canonical upper-case code. Unregistered codes raise.

    Non-goals:
        - No conversion between currencies; a schedule has exactly one.
    """

    code: str

    def __post_init__(self) -> None:
        info = CurrencyRegistry.get_info(self.code)
        if info is None:
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code!r}")
        object.__setattr__(self, "code", info.code)

    @property
    def info(self) -> CurrencyInfo:
        return CurrencyRegistry.get_info(self.code)

    @property
    def decimal_places(self) -> int:
        return self.info.decimal_places

    @property
    def minor_unit(self) -> Decimal:
        """Step every amount is rounded to (0.01 for PHP)."""
        return self.info.minor_unit

    @property
    def name(self) -> str:
        return self.info.name

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _as_decimal(value: object) -> Decimal:
    """Decimal from a Decimal, int or numeric string. Floats are refused."""
    if isinstance(value, float):
        raise TypeError(f"Money amounts must not be float: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def _division_context(dividend: Decimal) -> Context:
    context = EXACT_CONTEXT.copy()
    context.prec = len(dividend.as_tuple().digits) + _DIVISION_EXTRA_DIGITS
    return context


def _scalar(value: object) -> Decimal | None:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    return None


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    An amount of one currency.

    Installment ``amount_due`` / ``amount_paid``, payment amounts and every
    allocation figure are Money. Two amounts only combine or compare when
    their currencies match; ``Money.of("50.00", "PHP") == Money.of("50", "PHP")``.
    Division keeps 28 significant digits beyond the dividend's own and does
    not round to minor units: call ``round()`` when a whole number of minor
    units is needed.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _as_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Build Money from user-facing input.

        Raises:
            TypeError: for float amounts.
            ValueError: for unparseable or non-finite amounts, unknown currencies.
        """
        return cls(_as_decimal(amount), currency if isinstance(currency, Currency) else Currency(currency))

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls.of(0, currency)

    @property
    def is_zero(self) -> bool:
        return not self.amount

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Return a new Money rounded to a whole number of minor units."""
        return self._with(self.currency.info.quantize(self.amount, rounding))

    def _with(self, amount: Decimal) -> Money:
        return Money(amount, self.currency)

    def _other_amount(self, other: Money, operation: str) -> Decimal:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {operation} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return other.amount

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(EXACT_CONTEXT.add(self.amount, self._other_amount(other, "add")))

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(EXACT_CONTEXT.subtract(self.amount, self._other_amount(other, "subtract")))

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._other_amount(other, "compare")

    def __neg__(self) -> Money:
        return self._with(EXACT_CONTEXT.minus(self.amount))

    def __abs__(self) -> Money:
        return self._with(EXACT_CONTEXT.abs(self.amount))

    def __mul__(self, factor: Decimal | int | str) -> Money:
        scalar = _scalar(factor)
        if scalar is None:
            return NotImplemented
        return self._with(EXACT_CONTEXT.multiply(self.amount, scalar))

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        scalar = _scalar(divisor)
        if scalar is None:
            return NotImplemented
        return self._with(_division_context(self.amount).divide(self.amount, scalar))

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
