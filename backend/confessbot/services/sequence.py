"""Confession numbering. The one primitive that must never hand out a number twice."""
import logging

from confessbot.core.exceptions import StoreConflictError

logger = logging.getLogger(__name__)

CONFESSION_COUNTER = "confessionNumber"


class SequenceCounter:
    def __init__(self, store):
        self.store = store

    def increment(self, name: str = CONFESSION_COUNTER) -> int:
        """
        Atomically advance counter `name` and return the new value.

        An absent counter starts at 1. Raises StoreConflictError when the
        store cannot complete the increment; callers must abort rather than
        persist anything without a number.
        """
        value = self.store.run_atomic_increment("counters", name, "value", 1, create_missing=True)
        if value is None:
            raise StoreConflictError(f"Counter {name} could not be incremented")
        logger.debug(f"[Sequence] {name} -> {value}")
        return value

    def current(self, name: str = CONFESSION_COUNTER) -> int:
        record = self.store.get("counters", name)
        return record["value"] if record else 0
