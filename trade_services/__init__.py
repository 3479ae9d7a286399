"""
Module: trade_services
Responsibility:
    Stateful orchestration over the pure engines: stock ledger and contract
    ports, override credential verification and authorization, allocation
    previews, and the order-composition session that ties them together.

Architecture position:
    Services -- may import trade_kernel, trade_engines and trade_config.
    Collaborators (stock ledger, contract source, credential verifier) are
    injected as protocols; the in-memory implementations here serve tests
    and embedding.
"""

from trade_services.authorization import (
    CredentialVerifier,
    HashedCredentialVerifier,
    hash_credential,
)
from trade_services.contracts import ContractSource, InMemoryContractSource
from trade_services.order_session import ConfirmedOrder, OrderCompositionSession
from trade_services.override_service import (
    EditKind,
    EditOutcome,
    OverrideAuthorizationService,
)
from trade_services.preview_service import (
    AllocationPreviewService,
    CancellationToken,
    validate_items,
)
from trade_services.stock_ledger import InMemoryStockLedger, StockLedger

__all__ = [
    "StockLedger",
    "InMemoryStockLedger",
    "ContractSource",
    "InMemoryContractSource",
    "CredentialVerifier",
    "HashedCredentialVerifier",
    "hash_credential",
    "OverrideAuthorizationService",
    "EditKind",
    "EditOutcome",
    "AllocationPreviewService",
    "CancellationToken",
    "validate_items",
    "OrderCompositionSession",
    "ConfirmedOrder",
]
