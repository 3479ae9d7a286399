"""
trade_engines.tracer -- ``@traced_engine`` and the TRADE_ENGINE_TRACE record.

Each decorated engine call logs its name, version, a fingerprint of the
selected keyword inputs and its duration.  The fingerprint is the first 16
hex characters of a SHA-256 over canonical JSON of those inputs, so equal
inputs (``Decimal("1.50")`` and ``Decimal("1.5")`` included) always give
equal fingerprints and a trace can be matched to a replay.

Usage:
    @traced_engine("fifo_allocation", "1.0", fingerprint_fields=("material_id",))
    def allocate_fifo(*, material_id, requested_quantity, batches, currency):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from trade_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

F = TypeVar("F", bound=Callable[..., Any])


def _fingerprint_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """Fingerprint of ``kwargs`` restricted to ``fields``; absent fields count as None."""
    selected = {name: kwargs.get(name) for name in fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"), default=_fingerprint_default)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[F], F]:
    def decorate(func: F) -> F:
        @functools.wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            fingerprint = compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            started = time.perf_counter()
            result = func(*args, **kwargs)
            _logger.info(
                "TRADE_ENGINE_TRACE",
                extra={
                    "trace_type": "TRADE_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                    "function": func.__qualname__,
                },
            )
            return result

        return traced  # type: ignore[return-value]

    return decorate
