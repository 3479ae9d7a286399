"""Unit tests for order lines, override records and the material catalog."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from trade_kernel.domain.catalog import Material, MaterialCatalog
from trade_kernel.domain.order import LineIssue, OverrideRecord
from trade_kernel.exceptions import MaterialNotFoundError

from tests.factories import make_line


def _record(rate="8.5"):
    return OverrideRecord(
        record_id=uuid4(),
        material_id="DIESEL",
        original_rate=Decimal("9.25"),
        override_rate=Decimal(rate),
        reason="Volume deal",
        approved_by="manager-1",
        approved_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


class TestOrderLine:
    def test_line_amount(self):
        assert make_line("L1", "DIESEL", "2.5", "4").line_amount == Decimal("10.0")

    def test_with_override_freezes_price(self):
        line = make_line("L1", "DIESEL", 10, "9.25").with_override(_record())

        assert line.is_overridden is True
        assert line.unit_price == Decimal("8.5")
        with pytest.raises(ValueError, match="frozen"):
            line.with_price(Decimal("7"))

    def test_override_must_match_price(self):
        line = make_line("L1", "DIESEL", 10, "9.25")

        with pytest.raises(ValueError, match="does not match"):
            type(line)(line.line_id, line.material_id, line.quantity, Decimal("9"), _record("8.5"))

    def test_cleared_drops_override_and_issue(self):
        line = make_line("L1", "DIESEL", 10, "9.25").with_override(_record())

        cleared = line.cleared("COPPER", Decimal("3.5"))

        assert cleared.material_id == "COPPER"
        assert cleared.override is None
        assert cleared.is_valid is True
        assert cleared.quantity == Decimal("10")

    def test_cleared_with_issue(self):
        cleared = make_line("L1", "DIESEL", 1, 1).cleared(
            "GOLD", Decimal("0"), LineIssue("MATERIAL_NOT_FOUND", "Material not found: GOLD")
        )

        assert cleared.is_valid is False


class TestMaterialCatalog:
    def test_get_and_find(self, catalog):
        assert catalog.get("DIESEL").name == "Diesel"
        assert catalog.find("GOLD") is None
        assert "COPPER" in catalog
        assert len(catalog) == 4

    def test_get_unknown(self, catalog):
        with pytest.raises(MaterialNotFoundError):
            catalog.get("GOLD")

    def test_replace_and_invalidate(self, catalog):
        catalog.replace([Material("GOLD", "Gold", "oz", Decimal("700"))])

        assert [m.material_id for m in catalog] == ["GOLD"]
        catalog.invalidate()
        assert len(catalog) == 0

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            Material("X", "X", "KG", Decimal("-1"))

    def test_empty_catalog(self):
        assert len(MaterialCatalog()) == 0
