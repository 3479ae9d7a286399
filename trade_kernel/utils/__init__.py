"""Utility functions for the trade kernel."""

from trade_kernel.utils.hashing import canonicalize_json, hash_payload
from trade_kernel.utils.idempotency import preview_payload_hash, preview_request_key

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "preview_payload_hash",
    "preview_request_key",
]
