"""
Order Pricing Aggregator - subtotal, discount, tax and net amount of an order.

Pure functions with no I/O.  Tax is delegated to an optional collaborator
implementing ``TaxCalculator``; ``VatCalculator`` is the flat-rate VAT used
for taxable customers.

Usage:
    from trade_engines.order_totals import VatCalculator, calculate_order_totals

    totals = calculate_order_totals(
        lines=session_lines,
        discount_percent=Decimal("2"),
        currency=Currency("OMR"),
        tax=VatCalculator(rate_percent=Decimal("5")),
    )
    totals.net_amount  # Money, rounded to 3 decimals for OMR
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from trade_kernel.domain.order import OrderLine
from trade_kernel.domain.values import Currency, Money, as_decimal
from trade_kernel.logging_config import get_logger
from trade_engines.tracer import traced_engine

logger = get_logger("engines.order_totals")

_HUNDRED = Decimal("100")


class TaxCalculator(Protocol):
    """Computes tax on the discounted order subtotal."""

    def calculate(self, taxable_amount: Money) -> Money:
        ...


@dataclass(frozen=True)
class VatCalculator:
    """Flat VAT on the discounted subtotal; zero for non-taxable customers."""

    rate_percent: Decimal = Decimal("5")
    taxable: bool = True

    def __post_init__(self) -> None:
        rate = as_decimal(self.rate_percent, "rate_percent")
        if rate < 0:
            raise ValueError(f"VAT rate cannot be negative: {rate}")
        object.__setattr__(self, "rate_percent", rate)

    def calculate(self, taxable_amount: Money) -> Money:
        if not self.taxable:
            return Money.zero(taxable_amount.currency)
        return taxable_amount * (self.rate_percent / _HUNDRED)


@dataclass(frozen=True)
class OrderTotals:
    """Order-level amounts, each rounded to the currency's precision."""

    total_amount: Money
    discount_percent: Decimal
    discount_amount: Money
    tax_amount: Money
    net_amount: Money

    @property
    def taxable_amount(self) -> Money:
        return self.total_amount - self.discount_amount


@traced_engine("order_totals", "1.0", fingerprint_fields=("discount_percent",))
def calculate_order_totals(
    *,
    lines: Iterable[OrderLine],
    discount_percent: Decimal,
    currency: Currency,
    tax: TaxCalculator | None = None,
) -> OrderTotals:
    """Aggregate line amounts into order totals.

    ``net_amount = total - discount + tax``.  The subtotal is rounded
    half-up to the currency's decimal places first; discount and tax are
    computed from rounded amounts so the components always add up.

    Raises:
        ValueError: If ``discount_percent`` is outside [0, 100].
    """
    percent = as_decimal(discount_percent, "discount_percent")
    if percent < 0 or percent > _HUNDRED:
        raise ValueError(f"Discount percentage must be within [0, 100]: {percent}")

    total = Money.zero(currency)
    for line in lines:
        total = total + Money(amount=line.line_amount, currency=currency)

    total = total.round()
    discount = (total * (percent / _HUNDRED)).round()
    taxable = total - discount
    tax_amount = tax.calculate(taxable).round() if tax is not None else Money.zero(currency)

    totals = OrderTotals(
        total_amount=total,
        discount_percent=percent,
        discount_amount=discount,
        tax_amount=tax_amount,
        net_amount=taxable + tax_amount,
    )
    logger.debug(
        "order_totals_calculated",
        extra={
            "total_amount": totals.total_amount.amount,
            "discount_amount": totals.discount_amount.amount,
            "tax_amount": totals.tax_amount.amount,
            "net_amount": totals.net_amount.amount,
        },
    )
    return totals
