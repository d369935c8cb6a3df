"""
Action-Lock Coordinator - single-flight guard for roster mutations.

At most one mutating action runs at a time. A second begin_action() while
one is outstanding is rejected, never queued. The row that holds the lock
shows a busy state; every other row (and every page-level control) is
disabled until end_action().
"""

from typing import Any, Optional

from util.logging import logger

from .errors import ConcurrencyRejection, LockInvariantViolation

# Identifier used when the whole roster is the subject (refresh)
ROSTER_ACTION = "__roster__"
# Identifier used by create flows, which have no record id yet
NEW_RECORD = "__new__"


class ActionLock:
    """Tracks the one in-flight mutation and which record it targets."""

    def __init__(self):
        self.global_lock = False
        self.locked_id: Optional[Any] = None

    @property
    def is_locked(self) -> bool:
        return self.global_lock

    def begin_action(self, record_id: Any) -> bool:
        """Take the lock for record_id. Returns False when another action holds it."""
        if self.global_lock:
            logger.log_lock_event("rejected", record_id, holder=self.locked_id)
            return False
        self.global_lock = True
        self.locked_id = record_id
        logger.log_lock_event("acquired", record_id)
        return True

    def require(self, record_id: Any) -> None:
        """begin_action() that raises ConcurrencyRejection instead of returning False."""
        if not self.begin_action(record_id):
            raise ConcurrencyRejection(self.locked_id)

    def end_action(self) -> None:
        """Release the lock. Safe to call on every exit path."""
        if self.global_lock:
            logger.log_lock_event("released", self.locked_id)
        self.global_lock = False
        self.locked_id = None

    def is_disabled(self, record_id: Any = None) -> bool:
        """Whether controls for record_id are inert.

        Page-level controls (record_id None) are disabled whenever anything is
        in flight. The locked row itself is not disabled; it shows as busy.
        """
        if not self.global_lock:
            return False
        if record_id is None:
            return True
        return record_id != self.locked_id

    def is_busy(self, record_id: Any) -> bool:
        return self.global_lock and record_id == self.locked_id

    def assert_held(self, record_id: Any) -> None:
        if not self.global_lock or self.locked_id != record_id:
            raise LockInvariantViolation(
                f"reconcile for {record_id!r} without holding the lock (held by {self.locked_id!r})"
            )
