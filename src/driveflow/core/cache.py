"""Bounded in-memory caches used by the event gate.

Both caches are process-wide state owned by whoever constructs them; they are
not persisted across restarts.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from .logger import get_logger

logger = get_logger("cache")

Clock = Callable[[], float]


class RecentTokenSet:
    """Remembers the most recent message tokens, evicting the oldest first."""

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._tokens: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def add(self, token: str) -> bool:
        """Record a token.

        Returns:
            True if the token was new, False if it had been seen already
        """
        with self._lock:
            if token in self._tokens:
                return False
            self._tokens[token] = None
            while len(self._tokens) > self._capacity:
                evicted, _ = self._tokens.popitem(last=False)
                logger.debug("Evicted message token %s", evicted)
            return True

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()


class CooldownTracker:
    """Per-key timestamp of the last accepted trigger.

    The clock is injectable so tests can control time. When more than
    ``capacity`` keys are tracked, the keys with the oldest timestamps are
    dropped.
    """

    def __init__(
        self,
        cooldown_seconds: float = 10.0,
        capacity: int = 100,
        clock: Clock = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._cooldown = cooldown_seconds
        self._capacity = capacity
        self._clock = clock
        self._last_seen: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown

    def remaining(self, key: str) -> float:
        """Seconds left before ``key`` may trigger again (0 when allowed)."""
        with self._lock:
            last = self._last_seen.get(key)
            if last is None:
                return 0.0
            elapsed = self._clock() - last
            return max(0.0, self._cooldown - elapsed)

    def try_acquire(self, key: str) -> float:
        """Record a trigger for ``key`` unless it is cooling down.

        Returns:
            0.0 when the trigger was accepted, otherwise the remaining cooldown
        """
        with self._lock:
            now = self._clock()
            last = self._last_seen.get(key)
            if last is not None and now - last < self._cooldown:
                return self._cooldown - (now - last)

            self._last_seen[key] = now
            self._last_seen.move_to_end(key)
            while len(self._last_seen) > self._capacity:
                self._last_seen.popitem(last=False)
            return 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_seen)

    def clear(self) -> None:
        with self._lock:
            self._last_seen.clear()
