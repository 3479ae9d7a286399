"""
Tests for the Rate Resolver.

Covers:
- Fixed, discount and price-guarantee rates
- Validity windows with contract fallback (inclusive end date)
- Expired and suspended rates falling back to market
- Unknown materials as invalid resolutions
- Rate explanation text and contract summaries
"""

from datetime import date
from decimal import Decimal

import pytest

from trade_engines.rate_resolver import (
    RateWarning,
    compute_contract_rate,
    describe_rate,
    resolve_rate,
    resolve_rate_or_invalid,
    summarize_contract,
)
from trade_kernel.domain.contract import (
    ContractStatus,
    DiscountPercentage,
    FixedRate,
    MinimumPriceGuarantee,
    RateType,
    RateValidity,
)
from trade_kernel.exceptions import MaterialNotFoundError

from tests.factories import TODAY, make_contract


class TestResolveRate:
    """Effective rate per rate specification variant."""

    def test_no_contract_uses_market_rate(self, catalog):
        resolution = resolve_rate(material_id="DIESEL", contract=None, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("10.000")
        assert resolution.market_rate == Decimal("10.000")
        assert resolution.is_contract_rate is False
        assert resolution.rate_spec is None
        assert resolution.warning is None

    def test_material_not_in_contract_uses_market_rate(self, catalog):
        contract = make_contract({"COPPER": FixedRate(Decimal("3"))})

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("10.000")
        assert resolution.is_contract_rate is False

    def test_fixed_rate(self, catalog, contract):
        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("9.250")
        assert resolution.is_contract_rate is True
        assert resolution.rate_type == RateType.FIXED_RATE
        assert resolution.expiry_date == date(2024, 12, 31)
        assert resolution.savings == Decimal("0.750")

    def test_discount_percentage(self, catalog, contract):
        resolution = resolve_rate(material_id="COPPER", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("2.8")
        assert resolution.rate_type == RateType.DISCOUNT_PERCENTAGE

    def test_price_guarantee_caps_market(self, catalog, contract):
        resolution = resolve_rate(material_id="ALU", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("1.000")
        assert resolution.rate_type == RateType.MINIMUM_PRICE_GUARANTEE

    def test_price_guarantee_follows_market_below_cap(self, catalog):
        contract = make_contract({"ALU": MinimumPriceGuarantee(Decimal("2.000"))})

        resolution = resolve_rate(material_id="ALU", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("1.200")

    def test_explicit_market_rate_overrides_catalog(self, catalog, contract):
        resolution = resolve_rate(
            material_id="COPPER",
            contract=contract,
            catalog=catalog,
            as_of=TODAY,
            market_rate=Decimal("5"),
        )

        assert resolution.market_rate == Decimal("5")
        assert resolution.effective_rate == Decimal("4.0")

    def test_fixed_rate_above_market_warns(self, catalog):
        contract = make_contract({"DIESEL": FixedRate(Decimal("12"))})

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("12")
        assert resolution.warning == RateWarning.RATE_ABOVE_MARKET
        assert resolution.savings == Decimal("0")

    def test_unknown_material_raises(self, catalog, contract):
        with pytest.raises(MaterialNotFoundError) as exc_info:
            resolve_rate(material_id="GOLD", contract=contract, catalog=catalog, as_of=TODAY)

        assert exc_info.value.material_id == "GOLD"

    def test_unknown_material_or_invalid(self, catalog, contract):
        resolution = resolve_rate_or_invalid(
            material_id="GOLD", contract=contract, catalog=catalog, as_of=TODAY
        )

        assert resolution.is_valid is False
        assert resolution.issue.code == "MATERIAL_NOT_FOUND"
        assert resolution.effective_rate == Decimal("0")


class TestRateValidity:
    """Active-window evaluation with per-rate fallback to the contract."""

    def test_expired_rate_falls_back_to_market(self, catalog, contract):
        resolution = resolve_rate(material_id="LUBE", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("8.000")
        assert resolution.is_expired is True
        assert resolution.is_contract_rate is False
        assert resolution.warning == RateWarning.CONTRACT_EXPIRED
        assert resolution.expiry_date == date(2024, 3, 31)

    def test_end_date_is_inclusive(self, catalog):
        contract = make_contract({"DIESEL": FixedRate(Decimal("9"))}, end=date(2024, 6, 30))

        on_last_day = resolve_rate(
            material_id="DIESEL", contract=contract, catalog=catalog, as_of=date(2024, 6, 30)
        )
        day_after = resolve_rate(
            material_id="DIESEL", contract=contract, catalog=catalog, as_of=date(2024, 7, 1)
        )

        assert on_last_day.effective_rate == Decimal("9")
        assert day_after.is_expired is True
        assert day_after.effective_rate == Decimal("10.000")

    def test_rate_not_yet_started(self, catalog):
        contract = make_contract({
            "DIESEL": FixedRate(Decimal("9"), validity=RateValidity(start_date=date(2024, 7, 1))),
        })

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.is_expired is True

    def test_suspended_rate_status(self, catalog):
        contract = make_contract({
            "DIESEL": FixedRate(
                Decimal("9"), validity=RateValidity(status=ContractStatus.SUSPENDED)
            ),
        })

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.warning == RateWarning.CONTRACT_EXPIRED

    def test_rate_status_overrides_contract_status(self, catalog):
        contract = make_contract(
            {"DIESEL": FixedRate(Decimal("9"), validity=RateValidity(status=ContractStatus.ACTIVE))},
            status=ContractStatus.SUSPENDED,
        )

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.effective_rate == Decimal("9")

    def test_legacy_number_inherits_contract_status(self, catalog):
        contract = make_contract({"DIESEL": "9.5"}, status=ContractStatus.EXPIRED)

        resolution = resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        assert resolution.is_expired is True
        assert resolution.rate_type == RateType.FIXED_RATE


class TestComputeContractRate:
    def test_full_discount_is_zero(self):
        assert compute_contract_rate(DiscountPercentage(Decimal("100")), Decimal("7")) == 0

    def test_zero_discount_is_market(self):
        assert compute_contract_rate(DiscountPercentage(Decimal("0")), Decimal("7")) == Decimal("7")

    def test_unsupported_spec(self):
        with pytest.raises(TypeError):
            compute_contract_rate("9.5", Decimal("7"))


class TestDescribeRate:
    """Human-readable rate explanation."""

    def _describe(self, material_id, contract, catalog):
        return describe_rate(
            resolve_rate(material_id=material_id, contract=contract, catalog=catalog, as_of=TODAY)
        )

    def test_market_rate(self, catalog):
        description = self._describe("DIESEL", None, catalog)

        assert description.text == "Market rate: 10.000 OMR"
        assert description.savings_percent == 0

    def test_fixed_rate_with_savings(self, catalog, contract):
        description = self._describe("DIESEL", contract, catalog)

        assert description.text == (
            "Fixed contract rate: 9.250 OMR, save 7.5% (valid until 2024-12-31)"
        )
        assert description.savings_percent == Decimal("7.5")

    def test_discount(self, catalog, contract):
        description = self._describe("COPPER", contract, catalog)

        assert description.text.startswith("20% discount on market rate 3.500")
        assert "save 20.0%" in description.text

    def test_price_guarantee_cap_applied(self, catalog, contract):
        description = self._describe("ALU", contract, catalog)

        assert "Price guarantee up to 1.000 OMR (cap applied)" in description.text
        assert description.savings_percent == Decimal("16.7")

    def test_expired(self, catalog, contract):
        description = self._describe("LUBE", contract, catalog)

        assert description.text == (
            "Contract rate expired on 2024-03-31, using market rate: 8.000 OMR"
        )
        assert description.warnings == (RateWarning.CONTRACT_EXPIRED,)

    def test_above_market(self, catalog):
        contract = make_contract({"DIESEL": FixedRate(Decimal("12"))})

        description = self._describe("DIESEL", contract, catalog)

        assert "above market" in description.text
        assert description.warnings == (RateWarning.RATE_ABOVE_MARKET,)

    def test_invalid_material(self, catalog):
        resolution = resolve_rate_or_invalid(
            material_id="GOLD", contract=None, catalog=catalog, as_of=TODAY
        )

        assert describe_rate(resolution).text == "Material not found: GOLD"


class TestSummarizeContract:
    def test_counts(self, contract):
        summary = summarize_contract(contract, TODAY, overridden_material_ids=["DIESEL"])

        assert summary.contract_id == "C-1"
        assert summary.total_rates == 4
        assert summary.active_rates == 3
        assert summary.expired_rates == 1
        assert summary.overridden_rates == 1
        assert summary.has_active_contract is True

    def test_overrides_outside_contract_not_counted(self, contract):
        summary = summarize_contract(contract, TODAY, overridden_material_ids=["GOLD"])

        assert summary.overridden_rates == 0

    def test_no_contract(self):
        summary = summarize_contract(None, TODAY)

        assert summary.total_rates == 0
        assert summary.has_active_contract is False


class TestResolverTrace:
    def test_emits_engine_trace(self, catalog, contract, captured_logs):
        resolve_rate(material_id="DIESEL", contract=contract, catalog=catalog, as_of=TODAY)

        traces = [r for r in captured_logs() if r["message"] == "TRADE_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "rate_resolver"
        assert len(traces[-1]["input_fingerprint"]) == 16
