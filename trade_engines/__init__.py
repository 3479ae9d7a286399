"""
Module: trade_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    pricing and allocation engines.  This is the canonical import surface
    for ``trade_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import trade_kernel domain types, exceptions and logging.
    MUST NOT import trade_services or trade_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by the caller.
    - Decimal-only arithmetic: rates, quantities and amounts are
      ``Decimal``/``Money``; floats are forbidden.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are wrapped by ``@traced_engine`` (see
    ``trade_engines.tracer``), emitting TRADE_ENGINE_TRACE log records.
"""

from trade_engines.fifo_allocation import (
    AllocationResult,
    AllocationSlice,
    FifoConsumptionTracker,
    allocate_fifo,
)
from trade_engines.order_totals import (
    OrderTotals,
    TaxCalculator,
    VatCalculator,
    calculate_order_totals,
)
from trade_engines.override_gate import (
    DEFAULT_OVERRIDE_EPSILON,
    OVERRIDE_TRANSITIONS,
    OverrideAttempt,
    OverrideRejection,
    OverrideState,
    RejectionReason,
    build_override_record,
    open_attempt,
    requires_override,
    transition,
    validate_override_request,
)
from trade_engines.preview import (
    AllocationPreview,
    InsufficientItem,
    PreviewEntry,
    PreviewItem,
    PreviewSummary,
    assemble_preview,
    require_confirmable,
)
from trade_engines.rate_resolver import (
    ContractRateSummary,
    RateDescription,
    RateResolution,
    RateWarning,
    compute_contract_rate,
    describe_rate,
    is_rate_spec_active,
    resolve_rate,
    resolve_rate_or_invalid,
    summarize_contract,
)
from trade_engines.stock_status import (
    StockCheck,
    StockStatus,
    StockValidation,
    check_stock,
    classify_stock,
)
from trade_engines.tracer import traced_engine

__all__ = [
    # Rate resolver
    "RateResolution",
    "RateWarning",
    "RateDescription",
    "ContractRateSummary",
    "resolve_rate",
    "resolve_rate_or_invalid",
    "compute_contract_rate",
    "is_rate_spec_active",
    "describe_rate",
    "summarize_contract",
    # Override gate
    "OverrideState",
    "OVERRIDE_TRANSITIONS",
    "OverrideAttempt",
    "OverrideRejection",
    "RejectionReason",
    "DEFAULT_OVERRIDE_EPSILON",
    "requires_override",
    "open_attempt",
    "transition",
    "validate_override_request",
    "build_override_record",
    # FIFO
    "AllocationSlice",
    "AllocationResult",
    "FifoConsumptionTracker",
    "allocate_fifo",
    # Totals
    "TaxCalculator",
    "VatCalculator",
    "OrderTotals",
    "calculate_order_totals",
    # Preview
    "PreviewEntry",
    "PreviewItem",
    "InsufficientItem",
    "PreviewSummary",
    "AllocationPreview",
    "assemble_preview",
    "require_confirmable",
    # Stock status
    "StockStatus",
    "StockCheck",
    "StockValidation",
    "classify_stock",
    "check_stock",
    # Tracing
    "traced_engine",
]
