"""
trade_engines.rate_resolver -- Effective unit price of a material.

Responsibility:
    Resolve the price a customer pays per unit of a material, given the
    material's market (standard) price and an optional customer contract.
    Also produces the human-readable rate explanation and the per-contract
    rate summary shown next to the order form.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The as-of date is an explicit argument; this module never reads a clock.

Invariants enforced:
    - An inactive rate (outside its effective window, or effective status
      not ACTIVE) never supplies the price; the market rate does, with a
      CONTRACT_EXPIRED warning.
    - DiscountPercentage never produces a negative rate.
    - MinimumPriceGuarantee never exceeds the market rate.

Failure modes:
    - MaterialNotFoundError for an unknown material from ``resolve_rate``.
      ``resolve_rate_or_invalid`` converts it into an invalid resolution so
      a single bad line never aborts a whole order.

Usage:
    from trade_engines.rate_resolver import resolve_rate

    resolution = resolve_rate(
        material_id="DIESEL",
        contract=contract,
        catalog=catalog,
        as_of=date(2024, 6, 1),
    )
    resolution.effective_rate      # Decimal
    resolution.warning             # RateWarning | None
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from trade_kernel.domain.catalog import MaterialCatalog
from trade_kernel.domain.contract import (
    Contract,
    DiscountPercentage,
    FixedRate,
    MinimumPriceGuarantee,
    RateSpec,
    RateType,
)
from trade_kernel.domain.order import LineIssue
from trade_kernel.exceptions import MaterialNotFoundError
from trade_kernel.logging_config import get_logger
from trade_engines.tracer import traced_engine

logger = get_logger("engines.rate_resolver")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class RateWarning(str, Enum):
    """Recoverable rate conditions surfaced to the user."""

    CONTRACT_EXPIRED = "contract_expired"
    RATE_ABOVE_MARKET = "contract_rate_above_market"


@dataclass(frozen=True)
class RateResolution:
    """Result of resolving one material's unit price."""

    material_id: str
    effective_rate: Decimal
    market_rate: Decimal
    is_contract_rate: bool = False
    rate_spec: RateSpec | None = None
    rate_type: RateType | None = None
    is_expired: bool = False
    warning: RateWarning | None = None
    expiry_date: date | None = None
    issue: LineIssue | None = None

    @property
    def is_valid(self) -> bool:
        return self.issue is None

    @property
    def savings(self) -> Decimal:
        """Per-unit saving against market, never negative."""
        return max(_ZERO, self.market_rate - self.effective_rate)


@dataclass(frozen=True)
class RateDescription:
    """Human-readable explanation of a resolved rate."""

    text: str
    savings_percent: Decimal
    warnings: tuple[RateWarning, ...] = ()


@dataclass(frozen=True)
class ContractRateSummary:
    """Counts of contract rates by state on a given date."""

    contract_id: str | None
    total_rates: int
    active_rates: int
    expired_rates: int
    overridden_rates: int

    @property
    def has_active_contract(self) -> bool:
        return self.active_rates > 0


def is_rate_spec_active(contract: Contract, spec: RateSpec, as_of: date) -> bool:
    """Whether ``spec`` may supply the price on ``as_of``."""
    return contract.is_rate_active(spec, as_of)


def compute_contract_rate(spec: RateSpec, market_rate: Decimal) -> Decimal:
    """Apply an active rate specification to the market rate."""
    if isinstance(spec, FixedRate):
        return spec.contract_rate
    if isinstance(spec, DiscountPercentage):
        discounted = market_rate * (1 - spec.percent / _HUNDRED)
        return max(_ZERO, discounted)
    if isinstance(spec, MinimumPriceGuarantee):
        return min(market_rate, spec.cap_rate)
    raise TypeError(f"Unsupported rate specification: {type(spec).__name__}")


@traced_engine("rate_resolver", "1.0", fingerprint_fields=("material_id", "as_of", "market_rate"))
def resolve_rate(
    *,
    material_id: str,
    contract: Contract | None,
    catalog: MaterialCatalog,
    as_of: date,
    market_rate: Decimal | None = None,
) -> RateResolution:
    """Resolve the effective unit price of ``material_id`` on ``as_of``.

    Args:
        material_id: Material being priced.
        contract: The customer's contract, or None.
        catalog: Material lookup supplying the standard (market) price.
        as_of: Pricing date (usually the order date).
        market_rate: Optional market rate overriding the catalog price.

    Raises:
        MaterialNotFoundError: If the material is not in the catalog.
    """
    material = catalog.get(material_id)
    market = market_rate if market_rate is not None else material.standard_price

    spec = contract.rate_for(material_id) if contract is not None else None
    if spec is None:
        return RateResolution(material_id=material_id, effective_rate=market, market_rate=market)

    validity = contract.effective_validity(spec)
    if not validity.is_active_on(as_of):
        logger.info(
            "contract_rate_inactive",
            extra={
                "material_id": material_id,
                "contract_id": contract.contract_id,
                "rate_status": validity.status.value,
                "end_date": validity.end_date,
                "as_of": as_of,
            },
        )
        return RateResolution(
            material_id=material_id,
            effective_rate=market,
            market_rate=market,
            rate_spec=spec,
            rate_type=spec.rate_type,
            is_expired=True,
            warning=RateWarning.CONTRACT_EXPIRED,
            expiry_date=validity.end_date,
        )

    effective = compute_contract_rate(spec, market)
    logger.debug(
        "rate_resolved",
        extra={
            "material_id": material_id,
            "contract_id": contract.contract_id,
            "rate_type": spec.rate_type.value,
            "effective_rate": effective,
            "market_rate": market,
        },
    )
    return RateResolution(
        material_id=material_id,
        effective_rate=effective,
        market_rate=market,
        is_contract_rate=True,
        rate_spec=spec,
        rate_type=spec.rate_type,
        warning=RateWarning.RATE_ABOVE_MARKET if effective > market else None,
        expiry_date=validity.end_date,
    )


def resolve_rate_or_invalid(
    *,
    material_id: str,
    contract: Contract | None,
    catalog: MaterialCatalog,
    as_of: date,
    market_rate: Decimal | None = None,
) -> RateResolution:
    """Like ``resolve_rate`` but an unknown material yields an invalid line."""
    try:
        return resolve_rate(
            material_id=material_id,
            contract=contract,
            catalog=catalog,
            as_of=as_of,
            market_rate=market_rate,
        )
    except MaterialNotFoundError as exc:
        logger.warning("rate_material_not_found", extra={"material_id": material_id})
        return RateResolution(
            material_id=material_id,
            effective_rate=_ZERO,
            market_rate=_ZERO,
            issue=LineIssue(code=exc.code, message=str(exc)),
        )


def _percent_of(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return _ZERO
    return (part / whole * _HUNDRED).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def describe_rate(resolution: RateResolution, currency_code: str = "OMR") -> RateDescription:
    """Explain a resolved rate the way the order form shows it."""
    market = resolution.market_rate
    spec = resolution.rate_spec

    if not resolution.is_valid:
        return RateDescription(text=resolution.issue.message, savings_percent=_ZERO)

    if spec is None:
        return RateDescription(
            text=f"Market rate: {market} {currency_code}",
            savings_percent=_ZERO,
        )

    if resolution.is_expired:
        until = f" on {resolution.expiry_date.isoformat()}" if resolution.expiry_date else ""
        return RateDescription(
            text=f"Contract rate expired{until}, using market rate: {market} {currency_code}",
            savings_percent=_ZERO,
            warnings=(RateWarning.CONTRACT_EXPIRED,),
        )

    effective = resolution.effective_rate
    savings_percent = _percent_of(resolution.savings, market)

    if isinstance(spec, FixedRate):
        if effective > market:
            premium = _percent_of(effective - market, market)
            return RateDescription(
                text=(
                    f"Fixed contract rate: {effective} {currency_code} "
                    f"({premium}% above market {market})"
                ),
                savings_percent=_ZERO,
                warnings=(RateWarning.RATE_ABOVE_MARKET,),
            )
        text = f"Fixed contract rate: {effective} {currency_code}"
    elif isinstance(spec, DiscountPercentage):
        text = f"{spec.percent}% discount on market rate {market}: {effective} {currency_code}"
    else:
        side = "cap applied" if spec.cap_rate < market else "market below cap"
        text = (
            f"Price guarantee up to {spec.cap_rate} {currency_code} "
            f"({side}): {effective} {currency_code}"
        )

    if savings_percent > 0:
        text = f"{text}, save {savings_percent}%"
    if resolution.expiry_date is not None:
        text = f"{text} (valid until {resolution.expiry_date.isoformat()})"
    return RateDescription(text=text, savings_percent=savings_percent)


def summarize_contract(
    contract: Contract | None,
    as_of: date,
    overridden_material_ids: Iterable[str] = (),
) -> ContractRateSummary:
    """Count active, expired and overridden rates of ``contract`` on ``as_of``."""
    if contract is None:
        return ContractRateSummary(None, 0, 0, 0, 0)

    overridden = set(overridden_material_ids)
    active = expired = 0
    for spec in contract.rates.values():
        if contract.is_rate_active(spec, as_of):
            active += 1
        else:
            expired += 1
    return ContractRateSummary(
        contract_id=contract.contract_id,
        total_rates=len(contract.rates),
        active_rates=active,
        expired_rates=expired,
        overridden_rates=len(overridden & set(contract.rates)),
    )
