"""
Customer contracts and rate specifications (``trade_kernel.domain.contract``).

Responsibility
--------------
Pure value objects for customer sales contracts: the contract header
(validity window, status, special terms) and the per-material rate
specification, a tagged variant of:

* ``FixedRate``             -- contract rate used verbatim
* ``DiscountPercentage``    -- percentage off the market rate
* ``MinimumPriceGuarantee`` -- market rate capped at ``cap_rate``

Each variant may carry its own ``RateValidity`` that overrides the
contract's dates and status field by field.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Contracts are
owned by the contract-management system; this package only reads them.

Invariants enforced
-------------------
* Normalization at ingestion: ``Contract.__post_init__`` converts every
  rate entry (legacy bare number, mapping, or variant) into a variant via
  ``normalize_rate_spec``.  Nothing downstream inspects raw shapes.
* A legacy bare number becomes ``FixedRate`` with no validity of its own,
  so it inherits the contract's window and status.
* Effective validity is computed in one place, ``Contract.effective_validity``.

Failure modes
-------------
* ``ValueError`` for unknown rate types, negative rates, percentages
  outside [0, 100], or a validity window whose start is after its end.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union

from trade_kernel.domain.values import as_decimal


class ContractStatus(str, Enum):
    """Lifecycle status of a contract or of an individual rate."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class RateType(str, Enum):
    """Rate specification variants."""

    FIXED_RATE = "fixed_rate"
    DISCOUNT_PERCENTAGE = "discount_percentage"
    MINIMUM_PRICE_GUARANTEE = "minimum_price_guarantee"


@dataclass(frozen=True)
class RateValidity:
    """
    Per-rate validity overriding the contract's.

    Any field left as None falls back to the contract-level value.
    """

    start_date: date | None = None
    end_date: date | None = None
    status: ContractStatus | None = None

    def __post_init__(self) -> None:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError(
                f"Rate validity starts after it ends: {self.start_date} > {self.end_date}"
            )
        if isinstance(self.status, str) and not isinstance(self.status, ContractStatus):
            object.__setattr__(self, "status", ContractStatus(self.status))


@dataclass(frozen=True)
class EffectiveValidity:
    """Fully resolved validity of one rate after contract fallback."""

    start_date: date | None
    end_date: date | None
    status: ContractStatus

    def is_active_on(self, as_of: date) -> bool:
        if self.status != ContractStatus.ACTIVE:
            return False
        if self.start_date is not None and as_of < self.start_date:
            return False
        if self.end_date is not None and as_of > self.end_date:
            return False
        return True


@dataclass(frozen=True)
class FixedRate:
    """Contract rate applied verbatim, independent of market movement."""

    rate_type: ClassVar[RateType] = RateType.FIXED_RATE

    contract_rate: Decimal
    validity: RateValidity | None = None

    def __post_init__(self) -> None:
        rate = as_decimal(self.contract_rate, "contract_rate")
        if rate < 0:
            raise ValueError(f"Contract rate cannot be negative: {rate}")
        object.__setattr__(self, "contract_rate", rate)


@dataclass(frozen=True)
class DiscountPercentage:
    """Percentage discount off the market rate."""

    rate_type: ClassVar[RateType] = RateType.DISCOUNT_PERCENTAGE

    percent: Decimal
    validity: RateValidity | None = None

    def __post_init__(self) -> None:
        percent = as_decimal(self.percent, "percent")
        if percent < 0 or percent > 100:
            raise ValueError(f"Discount percentage must be within [0, 100]: {percent}")
        object.__setattr__(self, "percent", percent)


@dataclass(frozen=True)
class MinimumPriceGuarantee:
    """Customer pays the lower of market rate and ``cap_rate``."""

    rate_type: ClassVar[RateType] = RateType.MINIMUM_PRICE_GUARANTEE

    cap_rate: Decimal
    validity: RateValidity | None = None

    def __post_init__(self) -> None:
        cap = as_decimal(self.cap_rate, "cap_rate")
        if cap < 0:
            raise ValueError(f"Guaranteed cap rate cannot be negative: {cap}")
        object.__setattr__(self, "cap_rate", cap)


RateSpec = Union[FixedRate, DiscountPercentage, MinimumPriceGuarantee]

_RATE_SPEC_TYPES = (FixedRate, DiscountPercentage, MinimumPriceGuarantee)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot parse date from {value!r}")


def _parse_validity(data: Mapping[str, Any]) -> RateValidity | None:
    start = _parse_date(_first(data, "start_date", "startDate", "validFrom"))
    end = _parse_date(_first(data, "end_date", "endDate", "validUntil"))
    status = _first(data, "status")
    if start is None and end is None and status is None:
        return None
    return RateValidity(
        start_date=start,
        end_date=end,
        status=ContractStatus(status) if status is not None else None,
    )


def normalize_rate_spec(raw: Any) -> RateSpec:
    """Normalize an ingested rate entry into a tagged variant.

    Accepts an existing variant (returned unchanged), a legacy bare number
    (``FixedRate`` inheriting contract validity), or a mapping carrying a
    ``type`` key plus the variant's value and optional validity fields.
    Both snake_case and camelCase keys are accepted.

    Raises:
        ValueError: If the entry has an unknown type or missing value.
    """
    if isinstance(raw, _RATE_SPEC_TYPES):
        return raw
    if not isinstance(raw, Mapping):
        return FixedRate(contract_rate=as_decimal(raw, "contract_rate"))

    rate_type = RateType(_first(raw, "type", "rate_type", "rateType") or RateType.FIXED_RATE)
    validity = _parse_validity(raw)

    if rate_type == RateType.FIXED_RATE:
        value = _first(raw, "contract_rate", "contractRate", "rate")
        if value is None:
            raise ValueError(f"Fixed rate entry is missing contract_rate: {dict(raw)!r}")
        return FixedRate(contract_rate=value, validity=validity)

    if rate_type == RateType.DISCOUNT_PERCENTAGE:
        value = _first(raw, "percent", "discount_percentage", "discountPercentage", "discountPercent")
        if value is None:
            raise ValueError(f"Discount entry is missing percent: {dict(raw)!r}")
        return DiscountPercentage(percent=value, validity=validity)

    value = _first(raw, "cap_rate", "capRate", "contract_rate", "contractRate", "guaranteedMinPrice")
    if value is None:
        raise ValueError(f"Price guarantee entry is missing cap_rate: {dict(raw)!r}")
    return MinimumPriceGuarantee(cap_rate=value, validity=validity)


@dataclass(frozen=True)
class Contract:
    """
    A customer sales contract.

    Contract:
        ``rates`` maps material id to a normalized ``RateSpec``.  Any raw
        entries supplied at construction are normalized in ``__post_init__``.

    Guarantees:
        - ``rates`` is a read-only mapping of variants only.
        - ``effective_validity`` applies the per-rate override with
          contract-level fallback, field by field.
    """

    contract_id: str
    customer_id: str
    start_date: date | None
    end_date: date | None
    status: ContractStatus
    rates: Mapping[str, Any] = field(default_factory=dict)
    special_terms: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.status, str) and not isinstance(self.status, ContractStatus):
            object.__setattr__(self, "status", ContractStatus(self.status))
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError(
                f"Contract {self.contract_id} starts after it ends: "
                f"{self.start_date} > {self.end_date}"
            )
        normalized = {
            str(material_id): normalize_rate_spec(raw)
            for material_id, raw in self.rates.items()
        }
        object.__setattr__(self, "rates", _FrozenRates(normalized))

    def rate_for(self, material_id: str) -> RateSpec | None:
        return self.rates.get(material_id)

    def effective_validity(self, spec: RateSpec) -> EffectiveValidity:
        own = spec.validity or RateValidity()
        return EffectiveValidity(
            start_date=own.start_date if own.start_date is not None else self.start_date,
            end_date=own.end_date if own.end_date is not None else self.end_date,
            status=own.status if own.status is not None else self.status,
        )

    def is_rate_active(self, spec: RateSpec, as_of: date) -> bool:
        return self.effective_validity(spec).is_active_on(as_of)

    def is_active_on(self, as_of: date) -> bool:
        """Whether the contract header itself is active on ``as_of``."""
        return EffectiveValidity(self.start_date, self.end_date, self.status).is_active_on(as_of)


class _FrozenRates(Mapping[str, RateSpec]):
    """Read-only view over normalized rates."""

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, RateSpec]):
        self._data = data

    def __getitem__(self, key: str) -> RateSpec:
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._data.items(), key=lambda kv: kv[0])))
