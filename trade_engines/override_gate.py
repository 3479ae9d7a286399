"""
trade_engines.override_gate -- Pure state machine for contract rate overrides.

Responsibility:
    Decide whether a manual rate edit needs manager approval, validate an
    approval request before the credential is checked, move an override
    attempt through its lifecycle, and build the auditable record of an
    approved override.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Credential verification,
    locking and line mutation live in
    ``trade_services.override_service.OverrideAuthorizationService``.

Invariants enforced:
    - Lifecycle: ``OVERRIDE_TRANSITIONS`` defines the only valid edges,
      IDLE -> PENDING_APPROVAL -> APPROVED | CANCELLED.  Terminal states
      have no outgoing edges.
    - Only lines with a locked rate (active contract rate or an earlier
      approved override) ever enter PENDING_APPROVAL, and only when the
      requested rate differs by more than epsilon.
    - An ``OverrideRecord`` is built only from a PENDING_APPROVAL attempt
      that has passed validation.

Failure modes:
    - IllegalOverrideTransitionError for a transition not in the table.
    - Business rejections (blank reason, negative rate, bad credential) are
      returned as ``OverrideRejection`` values, not raised.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from trade_kernel.domain.order import OverrideRecord
from trade_kernel.exceptions import IllegalOverrideTransitionError
from trade_kernel.logging_config import get_logger

logger = get_logger("engines.override_gate")

DEFAULT_OVERRIDE_EPSILON = Decimal("0.001")


class OverrideState(str, Enum):
    """Override attempt lifecycle states."""

    IDLE = "idle"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    CANCELLED = "cancelled"


OVERRIDE_TRANSITIONS: dict[OverrideState, frozenset[OverrideState]] = {
    OverrideState.IDLE: frozenset({OverrideState.PENDING_APPROVAL}),
    OverrideState.PENDING_APPROVAL: frozenset({
        OverrideState.APPROVED,
        OverrideState.CANCELLED,
    }),
    OverrideState.APPROVED: frozenset(),
    OverrideState.CANCELLED: frozenset(),
}

TERMINAL_OVERRIDE_STATES: frozenset[OverrideState] = frozenset({
    OverrideState.APPROVED,
    OverrideState.CANCELLED,
})


class RejectionReason(str, Enum):
    """Why an approval attempt did not succeed."""

    REASON_REQUIRED = "REASON_REQUIRED"
    NEGATIVE_RATE = "NEGATIVE_RATE"
    INVALID_OVERRIDE_CREDENTIAL = "INVALID_OVERRIDE_CREDENTIAL"
    AUTHORIZATION_UNAVAILABLE = "AUTHORIZATION_UNAVAILABLE"
    NO_OVERRIDE_REQUIRED = "NO_OVERRIDE_REQUIRED"


@dataclass(frozen=True)
class OverrideAttempt:
    """One user attempt to replace a locked rate on one line."""

    attempt_id: UUID
    line_id: str
    material_id: str
    locked_rate: Decimal
    requested_rate: Decimal
    state: OverrideState = OverrideState.IDLE
    record: OverrideRecord | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_OVERRIDE_STATES


@dataclass(frozen=True)
class OverrideRejection:
    """Non-fatal refusal of an approval.  The attempt is left unchanged."""

    reason: RejectionReason
    message: str
    attempt_id: UUID | None = None

    @property
    def is_retryable(self) -> bool:
        return self.reason in (
            RejectionReason.INVALID_OVERRIDE_CREDENTIAL,
            RejectionReason.AUTHORIZATION_UNAVAILABLE,
            RejectionReason.REASON_REQUIRED,
        )


def requires_override(
    locked_rate: Decimal | None,
    requested_rate: Decimal,
    epsilon: Decimal = DEFAULT_OVERRIDE_EPSILON,
) -> bool:
    """Whether editing a line to ``requested_rate`` must go through approval.

    ``locked_rate`` is None for lines without an active contract rate or
    approved override; such lines are edited directly.
    """
    if locked_rate is None:
        return False
    return abs(requested_rate - locked_rate) > epsilon


def can_transition(from_state: OverrideState, to_state: OverrideState) -> bool:
    return to_state in OVERRIDE_TRANSITIONS.get(from_state, frozenset())


def transition(
    attempt: OverrideAttempt,
    to_state: OverrideState,
    record: OverrideRecord | None = None,
) -> OverrideAttempt:
    """Move ``attempt`` to ``to_state``.

    Raises:
        IllegalOverrideTransitionError: If the edge is not in
            ``OVERRIDE_TRANSITIONS``, or APPROVED is requested without a record.
    """
    if not can_transition(attempt.state, to_state):
        raise IllegalOverrideTransitionError(
            str(attempt.attempt_id), attempt.state.value, to_state.value
        )
    if to_state == OverrideState.APPROVED and record is None:
        raise IllegalOverrideTransitionError(
            str(attempt.attempt_id), attempt.state.value, to_state.value
        )
    logger.debug(
        "override_transition",
        extra={
            "attempt_id": str(attempt.attempt_id),
            "line_id": attempt.line_id,
            "from_state": attempt.state.value,
            "to_state": to_state.value,
        },
    )
    return replace(attempt, state=to_state, record=record)


def open_attempt(
    *,
    attempt_id: UUID,
    line_id: str,
    material_id: str,
    locked_rate: Decimal,
    requested_rate: Decimal,
) -> OverrideAttempt:
    """Create an attempt and move it straight to PENDING_APPROVAL."""
    attempt = OverrideAttempt(
        attempt_id=attempt_id,
        line_id=line_id,
        material_id=material_id,
        locked_rate=locked_rate,
        requested_rate=requested_rate,
    )
    return transition(attempt, OverrideState.PENDING_APPROVAL)


def validate_override_request(
    attempt: OverrideAttempt,
    reason: str | None,
) -> OverrideRejection | None:
    """Checks that run before the credential is verified."""
    if reason is None or not reason.strip():
        return OverrideRejection(
            reason=RejectionReason.REASON_REQUIRED,
            message="A reason is required to override a contract rate",
            attempt_id=attempt.attempt_id,
        )
    if attempt.requested_rate < 0:
        return OverrideRejection(
            reason=RejectionReason.NEGATIVE_RATE,
            message=f"Override rate cannot be negative: {attempt.requested_rate}",
            attempt_id=attempt.attempt_id,
        )
    return None


def build_override_record(
    *,
    attempt: OverrideAttempt,
    record_id: UUID,
    reason: str,
    approved_by: str,
    approved_at: datetime,
) -> OverrideRecord:
    """Build the audit record for an attempt that is about to be approved."""
    if attempt.state != OverrideState.PENDING_APPROVAL:
        raise IllegalOverrideTransitionError(
            str(attempt.attempt_id), attempt.state.value, OverrideState.APPROVED.value
        )
    return OverrideRecord(
        record_id=record_id,
        material_id=attempt.material_id,
        original_rate=attempt.locked_rate,
        override_rate=attempt.requested_rate,
        reason=reason.strip(),
        approved_by=approved_by,
        approved_at=approved_at,
    )
