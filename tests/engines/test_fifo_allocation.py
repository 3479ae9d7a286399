"""
Tests for the FIFO Allocation Simulator.

Covers:
- Oldest-first consumption with partial batches
- Shortfall reporting
- Cost of goods sold and weighted average cost
- Input validation
- Cumulative consumption across lines sharing a material
"""

from decimal import Decimal

import pytest

from trade_engines.fifo_allocation import FifoConsumptionTracker, allocate_fifo

from tests.factories import OMR, make_batch


@pytest.fixture
def diesel_batches():
    # Deliberately out of order: FIFO sorting is the engine's job.
    return [
        make_batch("DIESEL", "D-002", 15, 100, "1.2"),
        make_batch("DIESEL", "D-001", 5, 100, "1.0"),
    ]


def _allocate(quantity, batches, material_id="DIESEL"):
    return allocate_fifo(
        material_id=material_id,
        requested_quantity=Decimal(str(quantity)),
        batches=batches,
        currency=OMR,
    )


class TestAllocateFifo:
    def test_single_batch_partially_consumed(self, diesel_batches):
        result = _allocate(40, diesel_batches)

        assert result.can_fulfill is True
        assert [s.batch_number for s in result.slices] == ["D-001"]
        assert result.slices[0].quantity_taken == Decimal("40")
        assert result.slices[0].fully_consumed is False
        assert result.cogs.amount == Decimal("40")

    def test_spans_batches_oldest_first(self, diesel_batches):
        result = _allocate(150, diesel_batches)

        assert [(s.batch_number, s.quantity_taken) for s in result.slices] == [
            ("D-001", Decimal("100")),
            ("D-002", Decimal("50")),
        ]
        assert result.slices[0].fully_consumed is True
        assert result.cogs.amount == Decimal("160")
        assert result.shortfall == Decimal("0")
        assert result.allocated_quantity == Decimal("150")

    def test_weighted_average_cost(self, diesel_batches):
        result = _allocate(150, diesel_batches)

        assert result.average_unit_cost == Decimal("160") / Decimal("150")

    def test_shortfall(self, diesel_batches):
        result = _allocate(250, diesel_batches)

        assert result.can_fulfill is False
        assert result.shortfall == Decimal("50")
        assert result.total_available == Decimal("200")
        assert result.allocated_quantity == Decimal("200")
        assert result.cogs.amount == Decimal("220")

    def test_no_batches(self):
        result = _allocate(10, [])

        assert result.can_fulfill is False
        assert result.shortfall == Decimal("10")
        assert result.slices == ()
        assert result.average_unit_cost is None
        assert result.cogs.is_zero

    def test_same_purchase_date_ordered_by_batch_number(self):
        batches = [
            make_batch("DIESEL", "B", 5, 10, "2"),
            make_batch("DIESEL", "A", 5, 10, "1"),
        ]

        result = _allocate(15, batches)

        assert [s.batch_number for s in result.slices] == ["A", "B"]

    def test_exhausted_batches_are_skipped(self):
        batches = [
            make_batch("DIESEL", "D-000", 1, 0, "0.5"),
            make_batch("DIESEL", "D-001", 5, 10, "1"),
        ]

        result = _allocate(5, batches)

        assert [s.batch_number for s in result.slices] == ["D-001"]

    def test_exact_quantity(self, diesel_batches):
        result = _allocate(200, diesel_batches)

        assert result.can_fulfill is True
        assert result.shortfall == Decimal("0")

    def test_does_not_mutate_batches(self, diesel_batches):
        _allocate(150, diesel_batches)

        assert {b.quantity_available for b in diesel_batches} == {Decimal("100")}

    @pytest.mark.parametrize("quantity", ["0", "-5"])
    def test_non_positive_quantity_rejected(self, diesel_batches, quantity):
        with pytest.raises(ValueError, match="positive"):
            _allocate(quantity, diesel_batches)

    def test_foreign_batch_rejected(self, diesel_batches):
        batches = diesel_batches + [make_batch("COPPER", "C-001", 1, 10, "2")]

        with pytest.raises(ValueError, match="C-001"):
            _allocate(10, batches)

    def test_negative_batch_quantity_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            make_batch("DIESEL", "D-009", 1, -1, "1")


class TestFifoConsumptionTracker:
    def test_lines_share_batches(self, diesel_batches):
        tracker = FifoConsumptionTracker()

        first = tracker.allocate(
            material_id="DIESEL", requested_quantity=Decimal("60"),
            batches=diesel_batches, currency=OMR,
        )
        second = tracker.allocate(
            material_id="DIESEL", requested_quantity=Decimal("60"),
            batches=diesel_batches, currency=OMR,
        )

        assert [(s.batch_number, s.quantity_taken) for s in first.slices] == [("D-001", Decimal("60"))]
        assert [(s.batch_number, s.quantity_taken) for s in second.slices] == [
            ("D-001", Decimal("40")),
            ("D-002", Decimal("20")),
        ]
        assert tracker.consumed("DIESEL") == Decimal("120")

    def test_second_line_sees_shortfall(self, diesel_batches):
        tracker = FifoConsumptionTracker()
        tracker.allocate(
            material_id="DIESEL", requested_quantity=Decimal("150"),
            batches=diesel_batches, currency=OMR,
        )

        second = tracker.allocate(
            material_id="DIESEL", requested_quantity=Decimal("80"),
            batches=diesel_batches, currency=OMR,
        )

        assert second.can_fulfill is False
        assert second.shortfall == Decimal("30")
        assert second.total_available == Decimal("50")

    def test_other_material_unaffected(self, diesel_batches):
        tracker = FifoConsumptionTracker()
        tracker.allocate(
            material_id="DIESEL", requested_quantity=Decimal("10"),
            batches=diesel_batches, currency=OMR,
        )

        assert tracker.consumed("COPPER") == Decimal("0")
