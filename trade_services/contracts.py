"""
trade_services.contracts -- Customer contract lookup.

Contracts are owned by the contract-management system; the order session
only reads them through ``ContractSource``.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from trade_kernel.domain.contract import Contract
from trade_kernel.exceptions import CustomerNotFoundError


@runtime_checkable
class ContractSource(Protocol):
    def get_contract(self, customer_id: str) -> Contract | None:
        """Return the customer's contract, None if they have none.

        Raises:
            CustomerNotFoundError: If the customer is unknown.
            UpstreamUnavailableError: If the source cannot be reached.
        """
        ...


class InMemoryContractSource:
    """Contracts keyed by customer; ``customers`` lists customers without one."""

    def __init__(self, contracts: Iterable[Contract] = (), customers: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._contracts: dict[str, Contract | None] = {c: None for c in customers}
        for contract in contracts:
            self._contracts[contract.customer_id] = contract

    def put(self, contract: Contract) -> None:
        with self._lock:
            self._contracts[contract.customer_id] = contract

    def get_contract(self, customer_id: str) -> Contract | None:
        with self._lock:
            if customer_id not in self._contracts:
                raise CustomerNotFoundError(customer_id)
            return self._contracts[customer_id]
