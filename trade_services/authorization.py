"""
trade_services.authorization -- Override credential verification.

Responsibility:
    Validate the opaque credential a manager supplies to approve a rate
    override.  Identity management is out of scope; this module only answers
    "is this credential accepted?".

Invariants enforced:
    - No plaintext secret is held: credentials are configured and compared
      as SHA-256 hex digests.
    - Comparison is constant-time via ``hmac.compare_digest``.
    - A verifier that cannot answer raises ``UpstreamUnavailableError``;
      the override gate treats that as a rejection (fail closed).
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from trade_config.schema import PricingConfig
from trade_kernel.logging_config import get_logger

logger = get_logger("services.authorization")


@runtime_checkable
class CredentialVerifier(Protocol):
    """External override credential check.

    ``verify`` answers whether the credential is accepted.  A verifier that
    cannot answer raises ``UpstreamUnavailableError``, ``ConnectionError``
    or ``TimeoutError``; the override service turns those into an
    AUTHORIZATION_UNAVAILABLE rejection.
    """

    def verify(self, secret: str) -> bool:
        ...


def hash_credential(secret: str) -> str:
    if not isinstance(secret, str):
        raise ValueError("credential must be a string")
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class HashedCredentialVerifier:
    """Accepts credentials whose SHA-256 digest is in the configured set."""

    def __init__(self, digests: Iterable[str]):
        self._digests = tuple(d.lower() for d in digests)
        if not self._digests:
            logger.warning("override_verifier_has_no_credentials")

    @classmethod
    def from_config(cls, config: PricingConfig) -> HashedCredentialVerifier:
        return cls(config.override_credential_digests)

    def verify(self, secret: str) -> bool:
        if not secret:
            return False
        candidate = hash_credential(secret)
        matched = False
        # Every digest is compared so timing does not reveal the match position.
        for digest in self._digests:
            if hmac.compare_digest(candidate, digest):
                matched = True
        return matched
