"""
Event deduplication for at-most-once license issuance.

Stores which provider events already triggered fulfillment. The in-memory
store lives for the process lifetime; a restart forgets it.
"""
import threading
from typing import Protocol, Set

import structlog

logger = structlog.get_logger(__name__)


class EventStore(Protocol):
    def has(self, event_id: str) -> bool:
        ...

    def mark(self, event_id: str) -> None:
        ...

    def should_process(self, event_id: str) -> bool:
        ...


class InMemoryEventStore:
    """
    Lock-guarded set of processed event ids.

    ``should_process`` checks and marks in one critical section: of any number
    of concurrent calls for the same id exactly one returns True.
    """

    def __init__(self) -> None:
        self._processed: Set[str] = set()
        self._lock = threading.Lock()

    def has(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._processed

    def mark(self, event_id: str) -> None:
        with self._lock:
            self._processed.add(event_id)

    def should_process(self, event_id: str) -> bool:
        with self._lock:
            if event_id in self._processed:
                logger.info("event_already_processed", event_id=event_id)
                return False
            self._processed.add(event_id)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._processed)
