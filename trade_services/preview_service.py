"""
trade_services.preview_service -- Allocation preview of a draft order.

Responsibility:
    Validate a preview request, price lines that carry no unit price through
    the rate resolver, read batches from the stock ledger, simulate FIFO
    allocation per material in parallel, and assemble the preview.  Repeats
    of a request id are served from an explicitly owned cache.

Architecture position:
    Services -- stateful orchestration over engines + ports.
    Composes ``trade_engines.fifo_allocation``, ``trade_engines.preview``
    and ``trade_engines.rate_resolver`` with a ``StockLedger``.

Invariants enforced:
    - Distinct materials are allocated concurrently; lines sharing a
      material are allocated sequentially in one task against cumulative
      consumption, in request order.
    - A preview is complete or absent: any ledger failure or cancellation
      discards every partial result.
    - The same request id with the same payload returns the cached preview
      without touching the ledger; with a different payload it raises
      ``IdempotencyPayloadMismatchError``.

Failure modes:
    - InvalidOrderRequestError for malformed items (before any computation).
    - UpstreamUnavailableError when the stock ledger cannot answer.
    - PreviewCancelledError when the cancellation token fires.

Usage:
    service = AllocationPreviewService(ledger, catalog, currency=Currency("OMR"), clock=clock)
    preview = service.preview_allocation(
        [OrderItemRequest("DIESEL", Decimal("150"), Decimal("1.5"))],
        request_id="req-42",
    )
    preview.to_dict()["canFulfillAll"]
"""

from __future__ import annotations

import contextvars
import threading
from collections import OrderedDict
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Any

from trade_kernel.domain.catalog import MaterialCatalog
from trade_kernel.domain.clock import Clock
from trade_kernel.domain.contract import Contract
from trade_kernel.domain.order import LineIssue, OrderItemRequest
from trade_kernel.domain.values import Currency, as_decimal
from trade_kernel.exceptions import (
    IdempotencyPayloadMismatchError,
    InvalidOrderRequestError,
    MaterialNotFoundError,
    PreviewCancelledError,
)
from trade_kernel.logging_config import LogContext, get_logger
from trade_kernel.utils.idempotency import preview_payload_hash, preview_request_key
from trade_engines.fifo_allocation import AllocationResult, FifoConsumptionTracker
from trade_engines.preview import AllocationPreview, PreviewEntry, assemble_preview
from trade_engines.rate_resolver import resolve_rate_or_invalid
from trade_services.stock_ledger import StockLedger

logger = get_logger("services.preview")


class CancellationToken:
    """Cooperative cancellation shared between a caller and a preview."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, request_id: str | None = None) -> None:
        if self._event.is_set():
            raise PreviewCancelledError(request_id)


def _coerce_item(raw: Any, index: int, problems: list[str]) -> OrderItemRequest | None:
    if isinstance(raw, OrderItemRequest):
        material_id, quantity, unit_price = raw.material_id, raw.quantity, raw.unit_price
    elif isinstance(raw, Mapping):
        material_id = raw.get("material_id", raw.get("materialId"))
        quantity = raw.get("quantity")
        unit_price = raw.get("unit_price", raw.get("unitPrice"))
    else:
        problems.append(f"items[{index}] is not an order item")
        return None

    if not material_id:
        problems.append(f"items[{index}].material_id is required")
    try:
        quantity = as_decimal(quantity, "quantity")
        if quantity <= 0:
            problems.append(f"items[{index}].quantity must be positive")
    except ValueError:
        problems.append(f"items[{index}].quantity must be numeric")
        quantity = None
    if unit_price is not None:
        try:
            unit_price = as_decimal(unit_price, "unit_price")
            if unit_price < 0:
                problems.append(f"items[{index}].unit_price cannot be negative")
        except ValueError:
            problems.append(f"items[{index}].unit_price must be numeric")

    if not material_id or quantity is None:
        return None
    return OrderItemRequest(str(material_id), quantity, unit_price)


def validate_items(items: Iterable[Any]) -> list[OrderItemRequest]:
    """Normalize and validate a preview request.

    Raises:
        InvalidOrderRequestError: Listing every problem found.
    """
    problems: list[str] = []
    normalized: list[OrderItemRequest] = []
    for index, raw in enumerate(items):
        item = _coerce_item(raw, index, problems)
        if item is not None:
            normalized.append(item)
    if not normalized and not problems:
        problems.append("at least one item is required")
    if problems:
        raise InvalidOrderRequestError(problems)
    return normalized


class AllocationPreviewService:
    """
    Builds allocation previews against a stock ledger.

    Contract:
        ``preview_allocation`` never mutates the ledger or the catalog.
        ``invalidate`` drops cached previews (all, or one request id).

    Non-goals:
        Does not reserve stock; a later preview may see different batches.
    """

    def __init__(
        self,
        ledger: StockLedger,
        catalog: MaterialCatalog,
        *,
        currency: Currency,
        clock: Clock,
        max_workers: int = 4,
        cache_size: int = 128,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1: {max_workers}")
        self._ledger = ledger
        self._catalog = catalog
        self._currency = currency
        self._clock = clock
        self._max_workers = max_workers
        self._cache_size = cache_size
        self._cache_lock = threading.Lock()
        self._cache: OrderedDict[str, tuple[str, AllocationPreview]] = OrderedDict()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def invalidate(self, request_id: str | None = None, branch_id: str | None = None) -> None:
        with self._cache_lock:
            if request_id is None:
                self._cache.clear()
            else:
                self._cache.pop(preview_request_key(request_id, branch_id), None)

    def _cached(self, key: str, payload_hash: str, request_id: str) -> AllocationPreview | None:
        with self._cache_lock:
            hit = self._cache.get(key)
            if hit is None:
                return None
            cached_hash, preview = hit
            if cached_hash != payload_hash:
                logger.warning(
                    "preview_payload_mismatch",
                    extra={"request_id": request_id, "expected_hash": cached_hash},
                )
                raise IdempotencyPayloadMismatchError(request_id, cached_hash, payload_hash)
            self._cache.move_to_end(key)
            return preview

    def _store(self, key: str, payload_hash: str, preview: AllocationPreview) -> None:
        if self._cache_size == 0:
            return
        with self._cache_lock:
            self._cache[key] = (payload_hash, preview)
            self._cache.move_to_end(key)
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview_allocation(
        self,
        items: Sequence[Any],
        branch_id: str | None = None,
        *,
        contract: Contract | None = None,
        request_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AllocationPreview:
        """Simulate FIFO allocation of ``items`` and assemble the preview.

        Raises:
            InvalidOrderRequestError: If the request is malformed.
            IdempotencyPayloadMismatchError: If ``request_id`` was used with
                a different payload.
            UpstreamUnavailableError: If the stock ledger fails.
            PreviewCancelledError: If ``cancel_token`` is cancelled.
        """
        requests = validate_items(items)
        token = cancel_token or CancellationToken()

        key = payload_hash = None
        if request_id is not None:
            key = preview_request_key(request_id, branch_id)
            payload_hash = preview_payload_hash(
                requests, branch_id, contract.contract_id if contract else None
            )
            cached = self._cached(key, payload_hash, request_id)
            if cached is not None:
                logger.info("preview_cache_hit", extra={"request_id": request_id})
                return cached

        with LogContext.bind(request_id=request_id):
            token.raise_if_cancelled(request_id)
            entries = self._price_entries(requests, contract)
            allocations = self._allocate_all(entries, branch_id, token, request_id)
            token.raise_if_cancelled(request_id)

            entries = [
                PreviewEntry(
                    material_id=e.material_id,
                    requested_quantity=e.requested_quantity,
                    unit_price=e.unit_price,
                    material=e.material,
                    allocation=allocations.get(i),
                    issue=e.issue,
                )
                for i, e in enumerate(entries)
            ]
            preview = assemble_preview(entries=entries, currency=self._currency)

        if key is not None:
            self._store(key, payload_hash, preview)
        return preview

    def _price_entries(
        self,
        requests: list[OrderItemRequest],
        contract: Contract | None,
    ) -> list[PreviewEntry]:
        as_of = self._clock.today()
        entries: list[PreviewEntry] = []
        for req in requests:
            material = self._catalog.find(req.material_id)
            if material is None:
                error = MaterialNotFoundError(req.material_id)
                entries.append(
                    PreviewEntry(
                        material_id=req.material_id,
                        requested_quantity=req.quantity,
                        unit_price=req.unit_price or Decimal("0"),
                        issue=LineIssue(error.code, str(error)),
                    )
                )
                continue
            unit_price = req.unit_price
            if unit_price is None:
                unit_price = resolve_rate_or_invalid(
                    material_id=req.material_id,
                    contract=contract,
                    catalog=self._catalog,
                    as_of=as_of,
                ).effective_rate
            entries.append(
                PreviewEntry(
                    material_id=req.material_id,
                    requested_quantity=req.quantity,
                    unit_price=unit_price,
                    material=material,
                )
            )
        return entries

    def _allocate_material(
        self,
        material_id: str,
        indexed: list[tuple[int, Decimal]],
        branch_id: str | None,
        token: CancellationToken,
        abort: threading.Event,
        request_id: str | None,
    ) -> list[tuple[int, AllocationResult]]:
        token.raise_if_cancelled(request_id)
        batches = self._ledger.get_batches(material_id, branch_id)
        tracker = FifoConsumptionTracker()
        results: list[tuple[int, AllocationResult]] = []
        for index, quantity in indexed:
            if abort.is_set():
                return results
            token.raise_if_cancelled(request_id)
            results.append(
                (
                    index,
                    tracker.allocate(
                        material_id=material_id,
                        requested_quantity=quantity,
                        batches=batches,
                        currency=self._currency,
                    ),
                )
            )
        return results

    def _allocate_all(
        self,
        entries: list[PreviewEntry],
        branch_id: str | None,
        token: CancellationToken,
        request_id: str | None,
    ) -> dict[int, AllocationResult]:
        groups: dict[str, list[tuple[int, Decimal]]] = {}
        for index, entry in enumerate(entries):
            if entry.issue is None:
                groups.setdefault(entry.material_id, []).append((index, entry.requested_quantity))
        if not groups:
            return {}

        abort = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(groups)),
            thread_name_prefix="fifo-preview",
        )
        try:
            futures: list[Future] = [
                executor.submit(
                    contextvars.copy_context().run,
                    self._allocate_material,
                    material_id,
                    indexed,
                    branch_id,
                    token,
                    abort,
                    request_id,
                )
                for material_id, indexed in groups.items()
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            failed = next((f for f in done if f.exception() is not None), None)
            if failed is not None:
                abort.set()
                for future in not_done:
                    future.cancel()
                exc = failed.exception()
                logger.warning(
                    "preview_discarded",
                    extra={
                        "request_id": request_id,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "material_count": len(groups),
                    },
                )
                raise exc
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        allocations: dict[int, AllocationResult] = {}
        for future in futures:
            for index, result in future.result():
                allocations[index] = result
        return allocations
