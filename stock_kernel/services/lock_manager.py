"""
LedgerLockManager -- in-process locks per (product, warehouse) pair.

Responsibility:
    Serialises movement-engine operations that touch the same ledger row
    while letting operations on disjoint pairs run in parallel.

Architecture position:
    Kernel > Services.  Owned by MovementEngine; one instance per
    application.

Invariants enforced:
    - Locks for one operation are acquired in sorted key order, so two
      operations over overlapping pairs cannot deadlock.
    - Acquisition is bounded by a timeout.  No operation waits forever.
    - Pair locks are always taken BEFORE the database connection lock
      (see Database.session_scope), never while holding it.

Failure modes:
    - LockTimeoutError when the locks cannot all be acquired in time.
      Locks already taken by the failed attempt are released.
"""

import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from stock_kernel.domain.values import LedgerKey
from stock_kernel.exceptions import LockTimeoutError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.locks")


class _PairLock:
    """A pair's lock plus the number of threads holding or waiting for it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class LedgerLockManager:
    """
    Registry of one non-reentrant lock per ledger pair.

    An entry lives only while some thread holds or waits for it, so the
    registry stays as small as the set of pairs currently in use.
    """

    def __init__(self) -> None:
        self._locks: dict[LedgerKey, _PairLock] = {}
        self._registry_lock = threading.Lock()

    def tracked_pairs(self) -> int:
        """Number of pairs currently held or waited for."""
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, key: LedgerKey) -> _PairLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _PairLock()
            entry.users += 1
            return entry

    def _checkin(self, key: LedgerKey, entry: _PairLock) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    def is_locked(self, key: LedgerKey) -> bool:
        with self._registry_lock:
            entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()

    @contextmanager
    def acquire(
        self,
        keys: Iterable[LedgerKey],
        timeout: float,
        operation: str = "unknown",
    ) -> Iterator[tuple[LedgerKey, ...]]:
        """
        Hold the locks for every key for the duration of the block.

        Yields the sorted, de-duplicated key tuple.
        """
        ordered = tuple(sorted(set(keys), key=LedgerKey.sort_key))
        deadline = time.monotonic() + timeout
        checked_out: list[tuple[LedgerKey, _PairLock]] = []
        held: list[threading.Lock] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                checked_out.append((key, entry))
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    logger.warning(
                        "ledger_lock_timeout",
                        extra={
                            "operation": operation,
                            "product_id": str(key.product_id),
                            "warehouse_id": str(key.warehouse_id),
                            "timeout_seconds": timeout,
                        },
                    )
                    raise LockTimeoutError(operation, timeout)
                held.append(entry.lock)
            yield ordered
        finally:
            for lock in reversed(held):
                lock.release()
            for key, entry in checked_out:
                self._checkin(key, entry)
