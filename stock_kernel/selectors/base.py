"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors MUST NOT call session.add(), session.delete(),
      session.commit() or session.flush().
    - Selectors return frozen dataclasses, never ORM instances.
    - The caller owns the session (normally Database.read_scope()).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
