"""
Module: trade_kernel.db.base
Responsibility: Declarative base of the stock ledger ORM models.
Architecture position: Kernel > DB.  Imports nothing from models/ or selectors/.

Invariants enforced:
    - Primary keys are uuid4 values stored as 36-character strings, which
      SQLite and server databases both accept.
    - Quantities and unit costs map to Numeric(38, 9) and come back as
      Decimal; no float column exists.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID bound as ``str(uuid)`` and loaded back into ``uuid.UUID``."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        date: Date,
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
