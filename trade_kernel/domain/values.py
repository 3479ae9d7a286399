"""
Numeric value objects shared by every pricing computation.

``as_decimal`` is the single conversion point for rates, quantities and
costs coming from outside (JSON, YAML, the database).  ``Money`` keeps an
amount and its currency together; arithmetic across currencies is an error
and rounding happens only when ``round()`` is called.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from trade_kernel.domain.currency import CurrencyRegistry


def as_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Convert an ingested number into a finite Decimal.

    Floats go through ``str`` so ``1.2`` stays ``Decimal("1.2")``.

    Raises:
        ValueError: For None, bools, non-numeric text, NaN and infinities.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric, got {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """Validated, upper-cased ISO 4217 code."""

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", CurrencyRegistry.validate(self.code))

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def quantum(self) -> Decimal:
        return CurrencyRegistry.quantum(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@functools.total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    An amount in one currency.

    Contract:
        ``amount`` is always a Decimal.  ``+``, ``-`` and ordering require
        the same currency; ``*`` takes a plain scalar.  Amounts are kept
        exact until ``round()``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", as_decimal(self.amount, "amount"))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency).__name__}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(as_decimal(amount, "amount"), currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(Decimal("0"), currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """New Money quantized to the currency's minor unit (half-up by default)."""
        return Money(self.amount.quantize(self.currency.quantum, rounding=rounding), self.currency)

    def _same_currency(self, other: Money, verb: str) -> Money:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {verb} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return other

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + self._same_currency(other, "add").amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - self._same_currency(other, "subtract").amount, self.currency)

    def __mul__(self, factor: Decimal | int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return Money(self.amount * factor, self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._same_currency(other, "compare").amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
