"""
Event Log

Events raised during an operation stay pending until the operation commits;
subscribers are notified only after every internal mutation has completed.
A failed operation discards its pending events.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[['Event'], None]


@dataclass(frozen=True)
class Event:
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0


class EventLog:
    """Append-only record of committed governance events"""

    def __init__(self):
        self._events: List[Event] = []
        self._pending: List[Event] = []
        self._subscribers: List[Subscriber] = []
        # OperationGuard shared by every component bound to this log
        self.guard = None

    def emit(self, name: str, **data):
        sequence = len(self._events) + len(self._pending)
        self._pending.append(Event(name=name, data=data, sequence=sequence))

    def commit(self):
        """
        Publish pending events and notify subscribers.

        The operation has already taken effect, so a failing subscriber is
        logged and the remaining subscribers are still notified.
        """
        committed, self._pending = self._pending, []
        self._events.extend(committed)
        for event in committed:
            logger.debug(f"Event {event.sequence}: {event.name} {event.data}")
            for subscriber in list(self._subscribers):
                try:
                    subscriber(event)
                except Exception:
                    logger.exception(
                        f"Subscriber {getattr(subscriber, '__name__', subscriber)!r} "
                        f"failed on event {event.name}")

    def rollback(self):
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} pending events")
        self._pending = []

    def subscribe(self, subscriber: Subscriber):
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber):
        self._subscribers.remove(subscriber)

    def events(self, name: Optional[str] = None) -> List[Event]:
        if name is None:
            return list(self._events)
        return [e for e in self._events if e.name == name]

    def __len__(self) -> int:
        return len(self._events)
