"""Process-local failed-attempt counter.

Bounds this process's retry storm for a message. Counts are not durable: a restart
resets them, which at worst costs one extra retry cycle before quarantine. Quarantine
admission itself is durable.
"""
from __future__ import annotations

import threading

from consumer.app.domain.models import AttemptKey

DEFAULT_MAX_ATTEMPTS = 3


class AttemptTracker:
    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._max_attempts = int(max_attempts)
        self._counts: dict[AttemptKey, int] = {}
        self._lock = threading.Lock()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def increment(self, key: AttemptKey) -> int:
        with self._lock:
            attempt = self._counts.get(key, 0) + 1
            self._counts[key] = attempt
            return attempt

    def current(self, key: AttemptKey) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    def clear(self, key: AttemptKey) -> None:
        with self._lock:
            self._counts.pop(key, None)

    def exceeds_limit(self, attempt_number: int) -> bool:
        """True once attempt_number has used up the allowance of max_attempts."""
        return attempt_number >= self._max_attempts
