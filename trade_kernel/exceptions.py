"""
Typed Exception Hierarchy for the Trade Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Order pricing must distinguish failures precisely.  "The stock ledger is
down" and "the material has zero stock" produce very different user
actions, and a caller that parses messages to tell them apart will
eventually get it wrong.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TradeKernelError (base)
    |
    +-- NotFoundError
    |   +-- MaterialNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- OrderLineNotFoundError
    |
    +-- OrderRequestError
    |   +-- InvalidOrderRequestError
    |   +-- IdempotencyPayloadMismatchError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- ConfirmationError
    |   +-- OrderNotConfirmableError
    |
    +-- OverrideError
    |   +-- IllegalOverrideTransitionError
    |
    +-- UpstreamUnavailableError
    |
    +-- PreviewCancelledError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|--------------------------------------
Not found    | MATERIAL_NOT_FOUND            | Material id absent from the catalog
             | CUSTOMER_NOT_FOUND            | Contract source does not know customer
             | ORDER_LINE_NOT_FOUND          | Session has no line with that id
-------------|-------------------------------|--------------------------------------
Request      | INVALID_ORDER_REQUEST         | Malformed request (non-positive qty...)
             | IDEMPOTENCY_PAYLOAD_MISMATCH  | Same request id, different payload
-------------|-------------------------------|--------------------------------------
Stock        | INSUFFICIENT_STOCK            | Confirmation attempted with shortages
-------------|-------------------------------|--------------------------------------
Confirmation | ORDER_NOT_CONFIRMABLE         | Confirmation attempted with invalid lines
-------------|-------------------------------|--------------------------------------
Override     | ILLEGAL_OVERRIDE_TRANSITION   | State machine edge does not exist
-------------|-------------------------------|--------------------------------------
Upstream     | UPSTREAM_UNAVAILABLE          | Stock ledger / authorization unreachable
-------------|-------------------------------|--------------------------------------
Preview      | PREVIEW_CANCELLED             | Outer request cancelled mid-computation

Recoverable outcomes are NOT exceptions: an expired contract is reported
as ``RateWarning.CONTRACT_EXPIRED`` on the rate resolution, a shortage is
``can_fulfill=False`` on the allocation, and a rejected override credential
is an ``OverrideRejection`` result.  Exceptions are reserved for conditions
that abort an operation.
"""


class TradeKernelError(Exception):
    """
    Base exception for all trade kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TRADE_KERNEL_ERROR"


# Lookup failures


class NotFoundError(TradeKernelError):
    """Base exception for unknown references."""

    code: str = "NOT_FOUND"


class MaterialNotFoundError(NotFoundError):
    """Material id is not present in the catalog."""

    code: str = "MATERIAL_NOT_FOUND"

    def __init__(self, material_id: str):
        self.material_id = material_id
        super().__init__(f"Material not found: {material_id}")


class CustomerNotFoundError(NotFoundError):
    """Customer id is unknown to the contract source."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class OrderLineNotFoundError(NotFoundError):
    """Order line id does not exist in the composition session."""

    code: str = "ORDER_LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Order line not found: {line_id}")


# Request-level failures


class OrderRequestError(TradeKernelError):
    """Base exception for request-level rejections."""

    code: str = "ORDER_REQUEST_ERROR"


class InvalidOrderRequestError(OrderRequestError):
    """
    Request is malformed and is rejected before any computation starts.

    ``problems`` lists every detected issue, e.g. ``("items[1].quantity
    must be positive",)``.
    """

    code: str = "INVALID_ORDER_REQUEST"

    def __init__(self, problems: list[str] | tuple[str, ...]):
        self.problems = tuple(problems)
        super().__init__("Invalid order request: " + "; ".join(self.problems))


class IdempotencyPayloadMismatchError(OrderRequestError):
    """
    Request id was already used with a different payload.

    Repeating a user action must carry the same payload; a changed payload
    under a reused id indicates a client bug.
    """

    code: str = "IDEMPOTENCY_PAYLOAD_MISMATCH"

    def __init__(self, request_id: str, expected_hash: str, received_hash: str):
        self.request_id = request_id
        self.expected_hash = expected_hash
        self.received_hash = received_hash
        super().__init__(
            f"Payload mismatch for request {request_id}: "
            f"expected {expected_hash}, received {received_hash}"
        )


# Stock


class StockError(TradeKernelError):
    """Base exception for stock availability errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Order cannot be confirmed because at least one line has a shortfall.

    ``shortages`` is a tuple of ``(material_id, requested, available,
    shortfall)`` with quantities as strings.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, shortages: list[tuple[str, str, str, str]]):
        self.shortages = tuple(shortages)
        names = ", ".join(f"{s[0]} short {s[3]}" for s in self.shortages)
        super().__init__(f"Insufficient stock: {names}")


# Confirmation


class ConfirmationError(TradeKernelError):
    """Base exception for the order confirmation gate."""

    code: str = "CONFIRMATION_ERROR"


class OrderNotConfirmableError(ConfirmationError):
    """Order has invalid lines or lines whose override awaits approval."""

    code: str = "ORDER_NOT_CONFIRMABLE"

    def __init__(
        self,
        invalid_lines: list[str] | tuple[str, ...] = (),
        pending_override_lines: list[str] | tuple[str, ...] = (),
    ):
        self.invalid_lines = tuple(invalid_lines)
        self.pending_override_lines = tuple(pending_override_lines)
        problems = []
        if self.invalid_lines:
            problems.append("invalid lines: " + ", ".join(self.invalid_lines))
        if self.pending_override_lines:
            problems.append(
                "overrides awaiting approval on lines: " + ", ".join(self.pending_override_lines)
            )
        super().__init__("Order cannot be confirmed; " + "; ".join(problems))


# Override gate


class OverrideError(TradeKernelError):
    """Base exception for override gate misuse."""

    code: str = "OVERRIDE_ERROR"


class IllegalOverrideTransitionError(OverrideError):
    """Requested state transition does not exist in the override state machine."""

    code: str = "ILLEGAL_OVERRIDE_TRANSITION"

    def __init__(self, attempt_id: str, from_state: str, to_state: str):
        self.attempt_id = attempt_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Override attempt {attempt_id} cannot move from "
            f"{from_state} to {to_state}"
        )


# Collaborators


class UpstreamUnavailableError(TradeKernelError):
    """
    An external collaborator (stock ledger, authorization) could not be reached.

    Fatal to the operation that needed it.  Never interpreted as zero stock
    or as a rejected credential.
    """

    code: str = "UPSTREAM_UNAVAILABLE"

    def __init__(self, collaborator: str, detail: str = ""):
        self.collaborator = collaborator
        self.detail = detail
        message = f"Upstream collaborator unavailable: {collaborator}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PreviewCancelledError(TradeKernelError):
    """Preview computation was cancelled; all partial results were discarded."""

    code: str = "PREVIEW_CANCELLED"

    def __init__(self, request_id: str | None = None):
        self.request_id = request_id
        super().__init__(f"Allocation preview cancelled: {request_id or '<anonymous>'}")
