"""
Module: trade_kernel.selectors.base
Responsibility: Common base of the read-only query selectors.
Architecture position: Kernel > Selectors.  May import db/, models/ and
    domain/ (the frozen DTOs selectors return instead of ORM rows).

Invariants enforced:
    - Selectors only read.  The caller owns the session and its transaction;
      a selector never adds, deletes, flushes or commits.
"""

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from trade_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
