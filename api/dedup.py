"""
Deduplicación de reentregas del webhook por MessageSid.

Un SID se recuerda recién cuando su evento se procesó bien:
si el primer intento falló, la reentrega del proveedor se procesa.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable


class RecentMessageCache:
    """Cache LRU acotado con TTL de SIDs ya procesados."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        while self._seen:
            oldest_key, oldest_time = next(iter(self._seen.items()))
            if now - oldest_time > self.ttl_seconds:
                self._seen.pop(oldest_key)
            else:
                break

    def seen(self, msg_id: str) -> bool:
        """True si el SID ya se procesó dentro del TTL."""
        if not msg_id:
            return False
        with self._lock:
            self._purge(self._clock())
            return msg_id in self._seen

    def remember(self, msg_id: str) -> None:
        if not msg_id:
            return
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._seen[msg_id] = now
            self._seen.move_to_end(msg_id)
            while len(self._seen) > self.max_entries:
                self._seen.popitem(last=False)
