"""
Property-based tests for allocation and pricing invariants.

Boundaries fuzzed here:
- FIFO walk: arbitrary batch sets, quantities and purchase dates
- Cumulative consumption: one line versus the same quantity split in two
- Rate resolution: discount and price-guarantee bounds
- Order totals: components always add up at currency precision
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from trade_engines.fifo_allocation import FifoConsumptionTracker, allocate_fifo
from trade_engines.order_totals import VatCalculator, calculate_order_totals
from trade_engines.rate_resolver import compute_contract_rate
from trade_kernel.domain.contract import DiscountPercentage, MinimumPriceGuarantee
from trade_kernel.domain.inventory import Batch

from tests.factories import OMR, make_line

quantities = st.decimals(min_value=Decimal("0"), max_value=Decimal("500"), places=3)
positive_quantities = st.decimals(min_value=Decimal("0.001"), max_value=Decimal("1500"), places=3)
costs = st.decimals(min_value=Decimal("0"), max_value=Decimal("50"), places=3)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=3)


@composite
def batch_sets(draw):
    count = draw(st.integers(min_value=0, max_value=8))
    return [
        Batch(
            material_id="DIESEL",
            batch_number=f"B-{i:03d}",
            purchase_date=date(2024, draw(st.integers(1, 12)), draw(st.integers(1, 28))),
            quantity_available=draw(quantities),
            unit_cost=draw(costs),
        )
        for i in range(count)
    ]


def _available(batches):
    return sum((b.quantity_available for b in batches), Decimal("0"))


class TestFifoProperties:
    @given(batches=batch_sets(), requested=positive_quantities)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_allocated_is_min_of_requested_and_available(self, batches, requested):
        result = allocate_fifo(
            material_id="DIESEL", requested_quantity=requested, batches=batches, currency=OMR
        )

        available = _available(batches)
        assert result.allocated_quantity == min(requested, available)
        assert result.can_fulfill == (requested <= available)
        assert result.shortfall == max(Decimal("0"), requested - available)

    @given(batches=batch_sets(), requested=positive_quantities)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_walk_is_oldest_first(self, batches, requested):
        result = allocate_fifo(
            material_id="DIESEL", requested_quantity=requested, batches=batches, currency=OMR
        )

        keys = [s.batch.fifo_sort_key() for s in result.slices]
        assert keys == sorted(keys)
        for piece in result.slices:
            assert Decimal("0") < piece.quantity_taken <= piece.batch.quantity_available
        # Only the last slice may leave quantity behind.
        assert all(s.fully_consumed for s in result.slices[:-1])

    @given(batches=batch_sets(), requested=positive_quantities)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_cogs_is_sum_of_contributions(self, batches, requested):
        result = allocate_fifo(
            material_id="DIESEL", requested_quantity=requested, batches=batches, currency=OMR
        )

        expected = sum((s.quantity_taken * s.unit_cost for s in result.slices), Decimal("0"))
        assert result.cogs.amount == expected

    @given(
        batches=batch_sets(),
        first=positive_quantities,
        second=positive_quantities,
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_split_lines_consume_like_one(self, batches, first, second):
        tracker = FifoConsumptionTracker()
        for quantity in (first, second):
            tracker.allocate(
                material_id="DIESEL", requested_quantity=quantity, batches=batches, currency=OMR
            )

        assert tracker.consumed("DIESEL") == min(first + second, _available(batches))


class TestRateProperties:
    @given(market=rates, percent=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_discount_within_market(self, market, percent):
        rate = compute_contract_rate(DiscountPercentage(percent), market)

        assert Decimal("0") <= rate <= market

    @given(market=rates, cap=rates)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_guarantee_never_above_market_or_cap(self, market, cap):
        rate = compute_contract_rate(MinimumPriceGuarantee(cap), market)

        assert rate == min(market, cap)


class TestTotalsProperties:
    @given(
        lines=st.lists(st.tuples(positive_quantities, rates), min_size=0, max_size=6),
        discount=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2),
        vat=st.decimals(min_value=Decimal("0"), max_value=Decimal("25"), places=2),
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_components_add_up(self, lines, discount, vat):
        order_lines = [
            make_line(f"L{i}", "DIESEL", qty, price) for i, (qty, price) in enumerate(lines)
        ]

        totals = calculate_order_totals(
            lines=order_lines,
            discount_percent=discount,
            currency=OMR,
            tax=VatCalculator(vat),
        )

        assert totals.net_amount == totals.total_amount - totals.discount_amount + totals.tax_amount
        for money in (totals.total_amount, totals.discount_amount, totals.tax_amount):
            assert money.amount == money.amount.quantize(Decimal("0.001"))
        assert totals.discount_amount <= totals.total_amount
