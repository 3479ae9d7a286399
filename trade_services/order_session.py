"""
trade_services.order_session -- One order-composition session.

Responsibility:
    Hold the draft order a user is composing (customer, contract, lines,
    discount) and run the pricing flow on every edit:

    * selecting a material resolves the line rate (Rate Resolver);
    * editing a contract-locked rate goes through the override gate;
    * ``preview`` runs the FIFO simulation and assembles the preview;
    * ``confirm`` passes the confirmation gate and returns a snapshot.

Architecture position:
    Services -- stateful orchestration.  Composes the rate resolver, the
    override authorization service, the preview service and the order
    totals engine.  Collaborators (contract source, stock ledger,
    credential verifier) are injected.

Invariants enforced:
    - A line's unit price comes from the rate resolver, an unlocked direct
      edit, or an approved override; nothing else changes it.
    - An approved override freezes the line price until the material
      selection changes, which clears it.
    - Changing customer reloads the contract, clears every override and
      re-resolves every line.
    - Confirmation requires a complete preview with every line supplied,
      no invalid lines and no override waiting for approval.
    - Lines without an override are re-resolved against the current date
      before edits, totals, previews and confirmation use them.

Failure modes:
    - CustomerNotFoundError from ``set_customer``.
    - OrderLineNotFoundError for unknown line ids.
    - InvalidOrderRequestError for non-positive quantities, out-of-range
      discounts or an empty order at confirmation.
    - UpstreamUnavailableError when the stock ledger or contract source fails.
    - InsufficientStockError / OrderNotConfirmableError from ``confirm``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from trade_config.schema import PricingConfig
from trade_kernel.domain.catalog import MaterialCatalog
from trade_kernel.domain.clock import Clock
from trade_kernel.domain.contract import Contract
from trade_kernel.domain.order import OrderItemRequest, OrderLine, OverrideRecord
from trade_kernel.domain.values import Currency, as_decimal
from trade_kernel.exceptions import (
    InvalidOrderRequestError,
    OrderLineNotFoundError,
    OrderNotConfirmableError,
)
from trade_kernel.logging_config import LogContext, get_logger
from trade_engines.order_totals import OrderTotals, VatCalculator, calculate_order_totals
from trade_engines.override_gate import OverrideRejection, RejectionReason
from trade_engines.preview import AllocationPreview, require_confirmable
from trade_engines.rate_resolver import (
    ContractRateSummary,
    RateDescription,
    RateResolution,
    describe_rate,
    resolve_rate_or_invalid,
    summarize_contract,
)
from trade_engines.stock_status import StockValidation, check_stock
from trade_services.authorization import CredentialVerifier
from trade_services.contracts import ContractSource
from trade_services.override_service import EditKind, EditOutcome, OverrideAuthorizationService
from trade_services.preview_service import AllocationPreviewService, CancellationToken
from trade_services.stock_ledger import StockLedger

logger = get_logger("services.order_session")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ConfirmedOrder:
    """Snapshot of an order that passed the confirmation gate."""

    order_id: str
    customer_id: str | None
    contract_id: str | None
    lines: tuple[OrderLine, ...]
    totals: OrderTotals
    preview: AllocationPreview
    overrides: tuple[OverrideRecord, ...]
    confirmed_at: datetime


class OrderCompositionSession:
    """
    Draft order and its pricing state for one user session.

    Edits are expected to arrive sequentially; the only concurrent path is
    override approval, which is serialized per line by the override service.
    """

    def __init__(
        self,
        *,
        catalog: MaterialCatalog,
        contracts: ContractSource,
        ledger: StockLedger,
        verifier: CredentialVerifier,
        clock: Clock,
        config: PricingConfig | None = None,
        preview_service: AllocationPreviewService | None = None,
        branch_id: str | None = None,
        order_id: str | None = None,
    ):
        self._config = config or PricingConfig(config_id="inline", version=1)
        self._catalog = catalog
        self._contracts = contracts
        self._ledger = ledger
        self._clock = clock
        self._currency = Currency(self._config.currency)
        self._overrides = OverrideAuthorizationService(
            verifier, clock, epsilon=self._config.override_epsilon
        )
        self._preview_service = preview_service or AllocationPreviewService(
            ledger,
            catalog,
            currency=self._currency,
            clock=clock,
            max_workers=self._config.preview_max_workers,
            cache_size=self._config.preview_cache_size,
        )
        self.branch_id = branch_id
        self.order_id = order_id or str(uuid4())

        self._lock = threading.RLock()
        self._lines: dict[str, OrderLine] = {}
        self._resolutions: dict[str, RateResolution] = {}
        self._line_seq = 0
        self.customer_id: str | None = None
        self.contract: Contract | None = None
        self.discount_percent = Decimal("0")
        self.taxable = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def lines(self) -> tuple[OrderLine, ...]:
        with self._lock:
            return tuple(self._lines.values())

    def line(self, line_id: str) -> OrderLine:
        with self._lock:
            try:
                return self._lines[line_id]
            except KeyError:
                raise OrderLineNotFoundError(line_id) from None

    def resolution(self, line_id: str) -> RateResolution:
        self.line(line_id)
        with self._lock:
            return self._resolutions[line_id]

    def describe_line_rate(self, line_id: str) -> RateDescription:
        return describe_rate(self.resolution(line_id), self._currency.code)

    def contract_summary(self) -> ContractRateSummary:
        overridden = [line.material_id for line in self.lines if line.is_overridden]
        return summarize_contract(self.contract, self._clock.today(), overridden)

    @property
    def override_audit(self) -> tuple[OverrideRecord, ...]:
        """Override records currently in effect on the order's lines."""
        return tuple(line.override for line in self.lines if line.override is not None)

    @property
    def override_history(self):
        return self._overrides.history

    def pending_override(self, line_id: str):
        self.line(line_id)
        return self._overrides.pending(line_id)

    # ------------------------------------------------------------------
    # Customer and lines
    # ------------------------------------------------------------------

    def _resolve(self, material_id: str) -> RateResolution:
        return resolve_rate_or_invalid(
            material_id=material_id,
            contract=self.contract,
            catalog=self._catalog,
            as_of=self._clock.today(),
        )

    def set_customer(self, customer_id: str, *, taxable: bool = True) -> Contract | None:
        """Switch customer: reload contract, clear overrides, reprice every line."""
        contract = self._contracts.get_contract(customer_id)
        with LogContext.bind(order_id=self.order_id, customer_id=customer_id):
            for line_id in list(self._lines):
                self._overrides.discard(line_id)
            with self._lock:
                self.customer_id = customer_id
                self.contract = contract
                self.taxable = taxable
                for line_id, line in list(self._lines.items()):
                    self._reprice(line_id, line.material_id, line)
            logger.info(
                "order_customer_changed",
                extra={
                    "contract_id": contract.contract_id if contract else None,
                    "line_count": len(self._lines),
                },
            )
        return contract

    def _reprice(self, line_id: str, material_id: str, line: OrderLine) -> OrderLine:
        resolution = self._resolve(material_id)
        repriced = line.cleared(material_id, resolution.effective_rate, resolution.issue)
        self._lines[line_id] = repriced
        self._resolutions[line_id] = resolution
        return repriced

    def _refresh_resolutions(self) -> None:
        """Re-resolve lines without an override against today's date.

        A line whose resolution changed (contract or rate lapsed, or became
        active) is repriced and loses any pending override attempt.  Lines
        whose resolution is unchanged keep their price, direct edits included.
        """
        with self._lock:
            stale = []
            for line_id, line in self._lines.items():
                if line.override is not None:
                    continue
                fresh = self._resolve(line.material_id)
                if fresh != self._resolutions[line_id]:
                    stale.append((line_id, line, fresh))
            for line_id, line, fresh in stale:
                self._lines[line_id] = line.cleared(line.material_id, fresh.effective_rate, fresh.issue)
                self._resolutions[line_id] = fresh
        for line_id, line, fresh in stale:
            self._overrides.discard(line_id)
            logger.info(
                "order_line_rate_refreshed",
                extra={
                    "line_id": line_id,
                    "material_id": line.material_id,
                    "previous_price": line.unit_price,
                    "unit_price": fresh.effective_rate,
                    "rate_warning": fresh.warning.value if fresh.warning else None,
                },
            )

    def add_line(self, material_id: str, quantity: Decimal = Decimal("1")) -> OrderLine:
        quantity = self._check_quantity(quantity)
        with self._lock:
            self._line_seq += 1
            line_id = f"L{self._line_seq}"
            placeholder = OrderLine(line_id, material_id, quantity, Decimal("0"))
            return self._reprice(line_id, material_id, placeholder)

    def select_material(self, line_id: str, material_id: str) -> OrderLine:
        """Change a line's material; drops its override and reprices it."""
        line = self.line(line_id)
        self._overrides.discard(line_id)
        with self._lock:
            updated = self._reprice(line_id, material_id, line)
        logger.debug(
            "order_line_material_selected",
            extra={"line_id": line_id, "material_id": material_id, "unit_price": updated.unit_price},
        )
        return updated

    def set_quantity(self, line_id: str, quantity: Decimal) -> OrderLine:
        quantity = self._check_quantity(quantity)
        with self._lock:
            updated = self.line(line_id).with_quantity(quantity)
            self._lines[line_id] = updated
            return updated

    def remove_line(self, line_id: str) -> None:
        self.line(line_id)
        self._overrides.discard(line_id)
        with self._lock:
            del self._lines[line_id]
            del self._resolutions[line_id]

    def set_discount_percent(self, percent: Decimal) -> None:
        try:
            value = as_decimal(percent, "discount_percent")
        except ValueError as exc:
            raise InvalidOrderRequestError([str(exc)]) from exc
        if value < 0 or value > _HUNDRED:
            raise InvalidOrderRequestError([f"discount_percent must be within [0, 100]: {value}"])
        self.discount_percent = value

    @staticmethod
    def _check_quantity(quantity: Decimal) -> Decimal:
        try:
            value = as_decimal(quantity, "quantity")
        except ValueError as exc:
            raise InvalidOrderRequestError([str(exc)]) from exc
        if value <= 0:
            raise InvalidOrderRequestError([f"quantity must be positive: {value}"])
        return value

    # ------------------------------------------------------------------
    # Rate edits and overrides
    # ------------------------------------------------------------------

    def _locked_rate(self, line_id: str) -> Decimal | None:
        line = self.line(line_id)
        if line.override is not None:
            return line.override.override_rate
        resolution = self._resolutions[line_id]
        if resolution.is_contract_rate:
            return resolution.effective_rate
        return None

    def edit_rate(self, line_id: str, requested_rate: Decimal) -> EditOutcome:
        """Manual rate edit.  Locked lines only change through approval."""
        rate = as_decimal(requested_rate, "requested_rate")
        self._refresh_resolutions()
        line = self.line(line_id)
        outcome = self._overrides.evaluate_edit(
            line_id=line_id,
            material_id=line.material_id,
            locked_rate=self._locked_rate(line_id),
            requested_rate=rate,
        )
        if outcome.kind == EditKind.DIRECT:
            if rate < 0:
                raise InvalidOrderRequestError([f"unit_price cannot be negative: {rate}"])
            with self._lock:
                self._lines[line_id] = self.line(line_id).with_price(rate)
        return outcome

    def approve_override(
        self,
        line_id: str,
        *,
        reason: str,
        credential: str,
        approved_by: str,
    ) -> OverrideRecord | OverrideRejection:
        self.line(line_id)

        def apply(record: OverrideRecord) -> None:
            with self._lock:
                self._lines[line_id] = self.line(line_id).with_override(record)

        with LogContext.bind(order_id=self.order_id, actor_id=approved_by):
            return self._overrides.approve(
                line_id,
                reason=reason,
                credential=credential,
                approved_by=approved_by,
                apply=apply,
            )

    def cancel_override(self, line_id: str) -> OrderLine:
        """Abandon the pending override; the line keeps its resolved or locked rate."""
        self.line(line_id)
        self._overrides.cancel(line_id)
        return self.line(line_id)

    def request_override(
        self,
        material_id: str,
        requested_rate: Decimal,
        reason: str,
        credential: str,
        approved_by: str,
        *,
        line_id: str | None = None,
    ) -> OverrideRecord | OverrideRejection:
        """Edit a locked rate and approve it in one step.

        The target line is ``line_id`` or, when omitted, the only line of
        ``material_id``.  A line that is not locked, or an edit within
        epsilon of the locked rate, yields ``NO_OVERRIDE_REQUIRED`` and
        changes nothing.
        """
        target = line_id or self._single_line_for(material_id)
        self._refresh_resolutions()
        if self._locked_rate(target) is None:
            return OverrideRejection(
                reason=RejectionReason.NO_OVERRIDE_REQUIRED,
                message=f"Line {target} has no contract rate to override; edit the rate directly",
            )
        outcome = self.edit_rate(target, requested_rate)
        if outcome.kind != EditKind.PENDING_APPROVAL:
            return OverrideRejection(
                reason=RejectionReason.NO_OVERRIDE_REQUIRED,
                message=f"Requested rate matches the locked rate of line {target}",
            )
        return self.approve_override(
            target, reason=reason, credential=credential, approved_by=approved_by
        )

    def _single_line_for(self, material_id: str) -> str:
        matches = [line.line_id for line in self.lines if line.material_id == material_id]
        if not matches:
            raise OrderLineNotFoundError(material_id)
        if len(matches) > 1:
            raise InvalidOrderRequestError(
                [f"material {material_id} is on lines {matches}; specify line_id"]
            )
        return matches[0]

    # ------------------------------------------------------------------
    # Totals, stock and preview
    # ------------------------------------------------------------------

    def totals(self) -> OrderTotals:
        self._refresh_resolutions()
        return calculate_order_totals(
            lines=self.lines,
            discount_percent=self.discount_percent,
            currency=self._currency,
            tax=VatCalculator(rate_percent=self._config.vat_rate_percent, taxable=self.taxable),
        )

    def stock_check(self) -> StockValidation:
        """Live stock validation of valid lines, aggregated per material."""
        self._refresh_resolutions()
        requests = [
            OrderItemRequest(line.material_id, line.quantity)
            for line in self.lines
            if line.is_valid
        ]
        levels = {
            material_id: self._ledger.get_current_stock(material_id, self.branch_id)
            for material_id in dict.fromkeys(r.material_id for r in requests)
        }
        return check_stock(
            requests=requests,
            stock_levels=levels,
            catalog=self._catalog,
            critical_ratio=self._config.critical_stock_ratio,
        )

    def preview(
        self,
        request_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AllocationPreview:
        self._refresh_resolutions()
        items = [
            OrderItemRequest(line.material_id, line.quantity, line.unit_price)
            for line in self.lines
        ]
        with LogContext.bind(order_id=self.order_id, customer_id=self.customer_id):
            return self._preview_service.preview_allocation(
                items,
                self.branch_id,
                contract=self.contract,
                request_id=request_id,
                cancel_token=cancel_token,
            )

    def confirm(self, request_id: str | None = None) -> ConfirmedOrder:
        """Run the confirmation gate and snapshot the order.

        Raises:
            InvalidOrderRequestError: If the order has no lines.
            OrderNotConfirmableError: If a line is invalid or awaits approval.
            InsufficientStockError: If any line cannot be fully supplied.
        """
        self._refresh_resolutions()
        lines = self.lines
        if not lines:
            raise InvalidOrderRequestError(["order has no lines"])
        pending = self._overrides.pending_lines()
        if pending:
            raise OrderNotConfirmableError(pending_override_lines=sorted(pending))

        preview = self.preview(request_id=request_id)
        require_confirmable(preview)

        confirmed = ConfirmedOrder(
            order_id=self.order_id,
            customer_id=self.customer_id,
            contract_id=self.contract.contract_id if self.contract else None,
            lines=lines,
            totals=self.totals(),
            preview=preview,
            overrides=self.override_audit,
            confirmed_at=self._clock.now(),
        )
        with LogContext.bind(order_id=self.order_id, customer_id=self.customer_id):
            logger.info(
                "order_confirmed",
                extra={
                    "line_count": len(lines),
                    "net_amount": confirmed.totals.net_amount.amount,
                    "total_cogs": preview.summary.total_cogs.amount,
                    "override_count": len(confirmed.overrides),
                },
            )
        return confirmed
