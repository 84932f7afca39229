"""In-process push feed of row-level changes on ``tasks``.

Subscribers receive ``(kind, record)`` for every committed insert, update and
delete. Delivery is synchronous, in registration order; consumers must treat
each event as an idempotent upsert/remove keyed by ``record.id`` because the
same change may be observed more than once (explicit write + feed).
"""
from __future__ import annotations
from enum import Enum
from typing import Callable, Dict, List, Tuple
import itertools
import logging
import threading

from ..domain.task import TaskRecord

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ChangeCallback = Callable[[ChangeKind, TaskRecord], None]


class Subscription:
    """Handle returned by ``subscribe``; ``cancel()`` is idempotent."""

    def __init__(self, feed: "ChangeFeed", token: int):
        self._feed = feed
        self._token = token
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self._feed._unsubscribe(self._token)
        self.active = False


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, ChangeCallback] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._subscribers[token] = callback
        return Subscription(self, token)

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    def publish(self, kind: ChangeKind, record: TaskRecord) -> int:
        """Deliver one change to every subscriber; returns the number notified."""
        with self._lock:
            targets: List[Tuple[int, ChangeCallback]] = list(self._subscribers.items())
        delivered = 0
        for token, callback in targets:
            try:
                callback(kind, record)
                delivered += 1
            except Exception:
                # one broken subscriber must not starve the others
                logger.exception("change feed subscriber %s failed on %s %s", token, kind.value, record.id)
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
