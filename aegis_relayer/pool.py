"""
In-memory pool of intents waiting for settlement.
"""
import threading
from collections import deque
from typing import Deque, Iterable, List, Tuple

from .models import Intent


class IntentPool:
    """
    Ordered pool of pending intents.

    Every operation takes the same lock, so a drain is indivisible with
    respect to concurrent enqueues, restores and other drains.
    """

    def __init__(self):
        self._intents: Deque[Intent] = deque()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._intents)

    def enqueue(self, intent: Intent) -> int:
        """
        Append an intent to the tail of the pool

        Returns:
            The pool size after the append
        """
        with self._lock:
            self._intents.append(intent)
            return len(self._intents)

    def drain_all(self) -> List[Intent]:
        """
        Remove and return every pooled intent in insertion order

        Returns:
            The drained intents, or an empty list if the pool was empty
        """
        with self._lock:
            drained = list(self._intents)
            self._intents.clear()
            return drained

    def restore_to_front(self, intents: Iterable[Intent]) -> int:
        """
        Put previously drained intents back at the head of the pool

        Relative order is preserved and the restored intents sit ahead
        of anything enqueued since the drain.

        Returns:
            The pool size after the restore
        """
        with self._lock:
            self._intents.extendleft(reversed(list(intents)))
            return len(self._intents)

    def snapshot(self) -> Tuple[Intent, ...]:
        with self._lock:
            return tuple(self._intents)
