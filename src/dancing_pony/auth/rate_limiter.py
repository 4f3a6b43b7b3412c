"""In-memory sliding window log rate limiter."""

import time
from threading import Lock


class InMemoryRateLimiter:
    """Sliding window log rate limiter.

    Keeps the exact timestamps of admitted requests per key and admits a
    new one only while fewer than ``max_allowed`` remain inside the
    trailing window. Expired timestamps are pruned lazily on each check.

    A single Lock guards the whole key map, so every check is serialized
    process-wide. Single-instance only.
    """

    def __init__(self, window_seconds: float = 10, max_allowed: int = 5) -> None:
        self._window = window_seconds
        self._max_allowed = max_allowed
        self._requests: dict[str, list[float]] = {}
        self._lock = Lock()

    @property
    def window_seconds(self) -> float:
        return self._window

    @property
    def max_allowed(self) -> int:
        return self._max_allowed

    def check(self, key: str) -> tuple[bool, int]:
        """Check if request is allowed and record it when it is.

        Args:
            key: Rate limit key, e.g. "ip:203.0.113.7" or "user:{uuid}".

        Returns:
            (allowed, retry_after_seconds).
            If allowed: (True, 0).
            If denied: (False, seconds_until_oldest_expires).
        """
        now = time.monotonic()
        cutoff = now - self._window

        with self._lock:
            timestamps = [t for t in self._requests.get(key, ()) if t > cutoff]

            if len(timestamps) >= self._max_allowed:
                self._requests[key] = timestamps
                retry_after = int(timestamps[0] - cutoff) + 1
                return False, max(retry_after, 1)

            timestamps.append(now)
            self._requests[key] = timestamps
            return True, 0

    def cleanup(self) -> int:
        """Remove keys whose timestamps have all expired. Call periodically.

        Does not change admission decisions: a swept key behaves exactly
        like a key whose window is empty.

        Returns:
            Number of keys cleaned up.
        """
        now = time.monotonic()
        cutoff = now - self._window

        with self._lock:
            empty_keys = [
                key
                for key, timestamps in self._requests.items()
                if not timestamps or timestamps[-1] <= cutoff
            ]
            for key in empty_keys:
                del self._requests[key]

        return len(empty_keys)

    def reset(self) -> None:
        """Forget every key."""
        with self._lock:
            self._requests.clear()
