"""
SequenceService -- named counters for log order and purchase order numbers.

Each counter is one row of ``sequence_counters``.  Allocation reads the
row ``FOR UPDATE`` (where the dialect supports it) and increments it in
the caller's transaction, so:

- values for one counter are strictly increasing across committed
  transactions
- a rolled-back movement or purchase order gives its value back, which
  keeps the movement log ``sequence`` and order numbers free of gaps

``initialize_sequences()`` runs once at application start.  After that
``next_value`` never has to create a row concurrently.
"""

from sqlalchemy import select

from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence import SequenceCounter
from stock_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Usage:
        with database.session_scope() as session:
            sequence = SequenceService(session).next_value(SequenceService.MOVEMENT_LOG)
    """

    MOVEMENT_LOG = "movement_log"
    PURCHASE_ORDER = "purchase_order"

    WELL_KNOWN = (MOVEMENT_LOG, PURCHASE_ORDER)

    def _counter(self, name: str, lock: bool = False) -> SequenceCounter | None:
        stmt = select(SequenceCounter).where(SequenceCounter.name == name)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        """Increment counter ``name`` and return the new value (first value is 1)."""
        counter = self._counter(name, lock=True)
        if counter is None:
            counter = SequenceCounter(name=name, current_value=0)
            self.session.add(counter)

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        """Last allocated value, or None for a counter that does not exist."""
        counter = self._counter(name)
        return None if counter is None else counter.current_value

    def initialize_sequences(self) -> None:
        for name in self.WELL_KNOWN:
            if self._counter(name) is None:
                self.session.add(SequenceCounter(name=name, current_value=0))
        self.session.flush()
