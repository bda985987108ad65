"""
ORM-Level Immutability Enforcement for the movement log.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement log is the history the ledger is reconciled against.  Entries
are appended, never rewritten: a wrong movement is corrected by a new
ADJUSTMENT, not by editing the old row.  These listeners catch any attempt
to UPDATE or DELETE a MovementLogEntry through the ORM before the SQL
reaches the database.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update] --> _block_movement_update() --> ImmutabilityViolationError
    [before_delete] --> _block_movement_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only for inserts)

    session.execute(update(MovementLogEntry)...)
         |
         v
    [do_orm_execute] --> _block_bulk_statements() --> ImmutabilityViolationError

If a check fails the flush aborts and the enclosing session_scope rolls the
transaction back.

===============================================================================
USAGE
===============================================================================

Called once at application startup:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import MovementLogEntry

logger = get_logger("db.immutability")


def _reject(entity_id, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "MovementLogEntry",
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="MovementLogEntry",
        entity_id=str(entity_id),
        reason=f"movement log entries are append-only ({operation} rejected)",
    )


def _block_movement_update(mapper, connection, target):
    _reject(target.id, "UPDATE")


def _block_movement_delete(mapper, connection, target):
    _reject(target.id, "DELETE")


def _block_bulk_statements(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    for mapper in orm_execute_state.all_mappers:
        if mapper.class_ is MovementLogEntry:
            operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
            _reject("*", f"bulk {operation}")


_MAPPER_LISTENERS = (
    ("before_update", _block_movement_update),
    ("before_delete", _block_movement_delete),
)


def register_immutability_listeners() -> None:
    """Install the listeners.  Safe to call more than once."""
    for name, fn in _MAPPER_LISTENERS:
        if not event.contains(MovementLogEntry, name, fn):
            event.listen(MovementLogEntry, name, fn)
    if not event.contains(Session, "do_orm_execute", _block_bulk_statements):
        event.listen(Session, "do_orm_execute", _block_bulk_statements)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  FOR TESTING ONLY."""
    for name, fn in _MAPPER_LISTENERS:
        if event.contains(MovementLogEntry, name, fn):
            event.remove(MovementLogEntry, name, fn)
    if event.contains(Session, "do_orm_execute", _block_bulk_statements):
        event.remove(Session, "do_orm_execute", _block_bulk_statements)
