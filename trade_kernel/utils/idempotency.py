"""
Idempotency key utilities for allocation previews.

A preview request is identified by the caller's request id; the payload
fingerprint detects a reused id carrying different items.
"""

from collections.abc import Iterable

from trade_kernel.domain.order import OrderItemRequest
from trade_kernel.utils.hashing import hash_payload


def preview_request_key(request_id: str, branch_id: str | None = None) -> str:
    """
    Build the cache key of a preview request.

    Format: preview:branch:request_id

    Example:
        >>> preview_request_key("req-1", "main")
        'preview:main:req-1'
    """
    return f"preview:{branch_id or '*'}:{request_id}"


def preview_payload_hash(
    items: Iterable[OrderItemRequest],
    branch_id: str | None = None,
    contract_id: str | None = None,
) -> str:
    """Fingerprint of everything that influences a preview result."""
    payload = {
        "branch_id": branch_id,
        "contract_id": contract_id,
        "items": [
            {
                "material_id": item.material_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in items
        ],
    }
    return hash_payload(payload)
