"""
Material catalog (``trade_kernel.domain.catalog``).

Responsibility
--------------
The ``Material`` value object and ``MaterialCatalog``, an explicit lookup
structure owned by whoever composes an order.  The catalog replaces any
module-level material cache: callers build one, pass it to the engines,
and call ``replace``/``invalidate`` when the master data changes.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import Decimal

from trade_kernel.domain.values import as_decimal
from trade_kernel.exceptions import MaterialNotFoundError


@dataclass(frozen=True, slots=True)
class Material:
    """A tradeable material and its current market (standard) price per unit."""

    material_id: str
    name: str
    unit: str
    standard_price: Decimal
    category: str = ""

    def __post_init__(self) -> None:
        price = as_decimal(self.standard_price, "standard_price")
        if price < 0:
            raise ValueError(
                f"Material {self.material_id} standard price cannot be negative: {price}"
            )
        object.__setattr__(self, "standard_price", price)
        if not self.material_id:
            raise ValueError("Material id is required")


class MaterialCatalog:
    """
    Explicitly owned, explicitly invalidated material lookup.

    Contract:
        ``get`` raises ``MaterialNotFoundError`` for unknown ids; ``find``
        returns None.  ``replace`` swaps the whole content atomically;
        ``invalidate`` empties it.

    Non-goals:
        Does not load materials itself; the owner supplies them.
    """

    def __init__(self, materials: Iterable[Material] = ()):
        self._lock = threading.Lock()
        self._materials: dict[str, Material] = {m.material_id: m for m in materials}

    def get(self, material_id: str) -> Material:
        material = self.find(material_id)
        if material is None:
            raise MaterialNotFoundError(material_id)
        return material

    def find(self, material_id: str) -> Material | None:
        with self._lock:
            return self._materials.get(material_id)

    def replace(self, materials: Iterable[Material]) -> None:
        """Replace the catalog content with a fresh set of materials."""
        fresh = {m.material_id: m for m in materials}
        with self._lock:
            self._materials = fresh

    def invalidate(self) -> None:
        """Drop every cached material."""
        with self._lock:
            self._materials = {}

    def __contains__(self, material_id: object) -> bool:
        with self._lock:
            return material_id in self._materials

    def __len__(self) -> int:
        with self._lock:
            return len(self._materials)

    def __iter__(self) -> Iterator[Material]:
        with self._lock:
            return iter(list(self._materials.values()))
