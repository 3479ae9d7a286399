"""
trade_services.override_service -- Stateful authorization of contract rate overrides.

Responsibility:
    Own the override attempts of one order-composition session: open an
    attempt when a manual edit conflicts with a locked rate, verify the
    manager credential, and apply the approved record to the line.

Architecture position:
    Services -- stateful orchestration over the pure
    ``trade_engines.override_gate`` state machine.  The credential check is
    delegated to a ``CredentialVerifier``; line mutation is delegated to the
    caller through an ``apply`` callback.

Invariants enforced:
    - Attempts on the same line are serialized by a per-line lock.
    - Verify-then-apply runs under that lock: no interleaving edit can slip
      between a successful credential check and the line update.
    - Only an APPROVED transition calls ``apply``; a rejection leaves the
      attempt pending and the line untouched.
    - Verifier unavailability fails closed (AUTHORIZATION_UNAVAILABLE).

Failure modes:
    - IllegalOverrideTransitionError when approving or cancelling a line
      without a pending attempt.
    - Exceptions raised by ``apply`` propagate; the attempt stays pending.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from trade_kernel.domain.clock import Clock
from trade_kernel.domain.order import OverrideRecord
from trade_kernel.exceptions import IllegalOverrideTransitionError, UpstreamUnavailableError
from trade_kernel.logging_config import get_logger
from trade_engines.override_gate import (
    DEFAULT_OVERRIDE_EPSILON,
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
from trade_services.authorization import CredentialVerifier

logger = get_logger("services.override")


class EditKind(str, Enum):
    DIRECT = "direct"
    NO_CHANGE = "no_change"
    PENDING_APPROVAL = "pending_approval"


@dataclass(frozen=True)
class EditOutcome:
    """How a manual rate edit was handled."""

    kind: EditKind
    attempt: OverrideAttempt | None = None


class OverrideAuthorizationService:
    """
    Override gate for one order-composition session.

    Contract:
        ``evaluate_edit`` classifies a manual rate edit.  ``approve`` and
        ``cancel`` resolve the pending attempt of a line.

    Guarantees:
        - At most one pending attempt per line; a newer edit replaces
          (cancels) the older pending attempt.
        - Resolved attempts are kept in ``history`` for audit.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        clock: Clock,
        epsilon: Decimal = DEFAULT_OVERRIDE_EPSILON,
    ):
        self._verifier = verifier
        self._clock = clock
        self._epsilon = epsilon
        self._registry_lock = threading.Lock()
        self._line_locks: dict[str, threading.Lock] = {}
        self._pending: dict[str, OverrideAttempt] = {}
        self._history: list[OverrideAttempt] = []

    def _lock_for(self, line_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._line_locks.get(line_id)
            if lock is None:
                lock = threading.Lock()
                self._line_locks[line_id] = lock
            return lock

    def _record_history(self, attempt: OverrideAttempt) -> None:
        with self._registry_lock:
            self._history.append(attempt)

    @property
    def history(self) -> tuple[OverrideAttempt, ...]:
        with self._registry_lock:
            return tuple(self._history)

    def pending(self, line_id: str) -> OverrideAttempt | None:
        with self._lock_for(line_id):
            return self._pending.get(line_id)

    def pending_lines(self) -> tuple[str, ...]:
        with self._registry_lock:
            return tuple(self._pending)

    def evaluate_edit(
        self,
        *,
        line_id: str,
        material_id: str,
        locked_rate: Decimal | None,
        requested_rate: Decimal,
    ) -> EditOutcome:
        """Classify a manual edit of a line's unit price.

        ``locked_rate`` is the active contract rate or approved override
        rate of the line, None when the line has neither.
        """
        with self._lock_for(line_id):
            if locked_rate is None:
                return EditOutcome(EditKind.DIRECT)
            if not requires_override(locked_rate, requested_rate, self._epsilon):
                return EditOutcome(EditKind.NO_CHANGE)

            previous = self._pending.pop(line_id, None)
            if previous is not None:
                self._record_history(transition(previous, OverrideState.CANCELLED))

            attempt = open_attempt(
                attempt_id=uuid4(),
                line_id=line_id,
                material_id=material_id,
                locked_rate=locked_rate,
                requested_rate=requested_rate,
            )
            self._pending[line_id] = attempt

        logger.info(
            "override_requested",
            extra={
                "attempt_id": str(attempt.attempt_id),
                "line_id": line_id,
                "material_id": material_id,
                "locked_rate": locked_rate,
                "requested_rate": requested_rate,
            },
        )
        return EditOutcome(EditKind.PENDING_APPROVAL, attempt)

    def approve(
        self,
        line_id: str,
        *,
        reason: str,
        credential: str,
        approved_by: str,
        apply: Callable[[OverrideRecord], None],
    ) -> OverrideRecord | OverrideRejection:
        """Verify the credential and, if accepted, apply the override.

        Raises:
            IllegalOverrideTransitionError: If the line has no pending attempt.
        """
        with self._lock_for(line_id):
            attempt = self._pending.get(line_id)
            if attempt is None:
                raise IllegalOverrideTransitionError(
                    line_id, OverrideState.IDLE.value, OverrideState.APPROVED.value
                )

            rejection = validate_override_request(attempt, reason)
            if rejection is None:
                rejection = self._verify(attempt, credential)
            if rejection is not None:
                logger.warning(
                    "override_rejected",
                    extra={
                        "attempt_id": str(attempt.attempt_id),
                        "line_id": line_id,
                        "rejection_reason": rejection.reason.value,
                    },
                )
                return rejection

            record = build_override_record(
                attempt=attempt,
                record_id=uuid4(),
                reason=reason,
                approved_by=approved_by,
                approved_at=self._clock.now(),
            )
            apply(record)
            approved = transition(attempt, OverrideState.APPROVED, record)
            del self._pending[line_id]

        self._record_history(approved)
        logger.info(
            "override_approved",
            extra={
                "attempt_id": str(approved.attempt_id),
                "record_id": str(record.record_id),
                "line_id": line_id,
                "material_id": record.material_id,
                "original_rate": record.original_rate,
                "override_rate": record.override_rate,
                "approved_by": approved_by,
            },
        )
        return record

    def _verify(self, attempt: OverrideAttempt, credential: str) -> OverrideRejection | None:
        try:
            accepted = self._verifier.verify(credential)
        except (UpstreamUnavailableError, ConnectionError, TimeoutError) as exc:
            logger.error(
                "override_authorization_unavailable",
                extra={
                    "attempt_id": str(attempt.attempt_id),
                    "error_type": type(exc).__name__,
                    "detail": str(exc),
                },
            )
            return OverrideRejection(
                reason=RejectionReason.AUTHORIZATION_UNAVAILABLE,
                message="Override authorization is unavailable, try again",
                attempt_id=attempt.attempt_id,
            )
        if not accepted:
            return OverrideRejection(
                reason=RejectionReason.INVALID_OVERRIDE_CREDENTIAL,
                message="Override credential was not accepted",
                attempt_id=attempt.attempt_id,
            )
        return None

    def cancel(self, line_id: str) -> OverrideAttempt:
        """Cancel the pending attempt; the line keeps its locked rate.

        Raises:
            IllegalOverrideTransitionError: If the line has no pending attempt.
        """
        with self._lock_for(line_id):
            attempt = self._pending.pop(line_id, None)
            if attempt is None:
                raise IllegalOverrideTransitionError(
                    line_id, OverrideState.IDLE.value, OverrideState.CANCELLED.value
                )
            cancelled = transition(attempt, OverrideState.CANCELLED)
        self._record_history(cancelled)
        logger.info(
            "override_cancelled",
            extra={"attempt_id": str(cancelled.attempt_id), "line_id": line_id},
        )
        return cancelled

    def discard(self, line_id: str) -> None:
        """Cancel any pending attempt of a line whose material or existence changed."""
        with self._lock_for(line_id):
            attempt = self._pending.pop(line_id, None)
            if attempt is None:
                return
            cancelled = transition(attempt, OverrideState.CANCELLED)
        self._record_history(cancelled)
        logger.debug("override_discarded", extra={"line_id": line_id})
