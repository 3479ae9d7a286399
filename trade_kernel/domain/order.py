"""
Order lines and override audit records (``trade_kernel.domain.order``).

Responsibility
--------------
Session-scoped order data: the requested items of a preview, the priced
order line, the auditable ``OverrideRecord`` created when a manager
approves a manual rate, and the ``LineIssue`` attached to a line that
could not be evaluated.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``OrderLine.line_amount`` is always ``quantity x unit_price``.
* ``OrderLine.is_overridden`` is true iff ``override`` is set, and then
  ``unit_price == override.override_rate``.
* ``OverrideRecord`` is frozen; a later approval replaces it, never edits it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from trade_kernel.domain.values import as_decimal


@dataclass(frozen=True)
class OrderItemRequest:
    """One requested line of an allocation preview."""

    material_id: str
    quantity: Decimal
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class OverrideRecord:
    """Approved manual rate replacing a contracted rate on one line."""

    record_id: UUID
    material_id: str
    original_rate: Decimal
    override_rate: Decimal
    reason: str
    approved_by: str
    approved_at: datetime

    def to_dict(self) -> dict[str, str]:
        return {
            "record_id": str(self.record_id),
            "material_id": self.material_id,
            "original_rate": str(self.original_rate),
            "override_rate": str(self.override_rate),
            "reason": self.reason,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat(),
        }


@dataclass(frozen=True)
class LineIssue:
    """Non-fatal problem that invalidates a single line."""

    code: str
    message: str


@dataclass(frozen=True)
class OrderLine:
    """
    A priced order line.

    Mutation happens by ``dataclasses.replace`` through the helpers below,
    which keep the override invariants intact.
    """

    line_id: str
    material_id: str
    quantity: Decimal
    unit_price: Decimal
    override: OverrideRecord | None = None
    issue: LineIssue | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", as_decimal(self.quantity, "quantity"))
        object.__setattr__(self, "unit_price", as_decimal(self.unit_price, "unit_price"))
        if self.override is not None and self.override.override_rate != self.unit_price:
            raise ValueError(
                f"Line {self.line_id} unit price {self.unit_price} does not match "
                f"override rate {self.override.override_rate}"
            )

    @property
    def is_overridden(self) -> bool:
        return self.override is not None

    @property
    def is_valid(self) -> bool:
        return self.issue is None

    @property
    def line_amount(self) -> Decimal:
        return self.quantity * self.unit_price

    def with_quantity(self, quantity: Decimal) -> OrderLine:
        return replace(self, quantity=as_decimal(quantity, "quantity"))

    def with_price(self, unit_price: Decimal) -> OrderLine:
        """Reprice the line; only legal while no override is attached."""
        if self.override is not None:
            raise ValueError(f"Line {self.line_id} price is frozen by an approved override")
        return replace(self, unit_price=as_decimal(unit_price, "unit_price"))

    def with_override(self, record: OverrideRecord) -> OrderLine:
        return replace(self, unit_price=record.override_rate, override=record)

    def cleared(self, material_id: str, unit_price: Decimal, issue: LineIssue | None = None) -> OrderLine:
        """New material selection: drops any override and issue."""
        return replace(
            self,
            material_id=material_id,
            unit_price=as_decimal(unit_price, "unit_price"),
            override=None,
            issue=issue,
        )
