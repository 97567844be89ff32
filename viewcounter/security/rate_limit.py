"""Rate limiting utilities."""
from __future__ import annotations

from threading import Lock

from cachetools import TTLCache


class RateLimiter:
    """Fixed-window request limiter keyed by client identifier.

    Bursts of view requests from one origin are cut off here, before they
    reach the cache manager's per-item locks.
    """

    def __init__(
        self, max_requests: int, window_seconds: int, *, max_clients: int = 10_000
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be greater than zero")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be greater than zero")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._lock = Lock()
        self._windows: TTLCache[str, int] = TTLCache(
            maxsize=max_clients, ttl=window_seconds
        )

    def hit(self, client_id: str) -> int | None:
        """Consume one request, returning the remaining budget or None when exhausted."""

        with self._lock:
            used = self._windows.get(client_id, 0)
            if used >= self.max_requests:
                return None
            self._windows[client_id] = used + 1
            return self.max_requests - used - 1

    def reset(self, client_id: str | None = None) -> None:
        with self._lock:
            if client_id is None:
                self._windows.clear()
            else:
                self._windows.pop(client_id, None)
