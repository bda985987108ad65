"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Common constructor for the services that run inside a caller's
    transaction (StockLedger, MovementLog, SequenceService).  They use
    ``session.flush()`` and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: session-bound services flush within the
    caller's transaction and never commit or roll back themselves.  The
    MovementEngine unit of work (or the catalog's session scope) owns
    commit and rollback, which is what makes a ledger write and its log
    entry one atomic step.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for session-bound kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide display queries -- those belong in
          ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
