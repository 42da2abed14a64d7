from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Mapping, Optional


class SlidingWindowLimiter:
    """Per-client limiter allowing `limit` requests in any trailing `window_s` seconds."""

    def __init__(self, limit: int, window_s: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = max(1, int(limit))
        self.window_s = float(window_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    def allow(self, client: str) -> bool:
        """Record a request for client and return whether it is within the limit."""
        now = self._clock()
        cutoff = now - self.window_s
        with self._lock:
            hits = self._hits.get(client)
            if hits is None:
                hits = deque()
                self._hits[client] = hits
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    def prune(self) -> None:
        """Drop clients with no requests inside the window."""
        cutoff = self._clock() - self.window_s
        with self._lock:
            for client in [c for c, h in self._hits.items() if not h or h[-1] <= cutoff]:
                del self._hits[client]


# PUBLIC_INTERFACE
def client_ip(headers: Mapping[str, str], peer: Optional[str]) -> str:
    """Client address: first X-Forwarded-For entry, then X-Real-IP, then the peer address."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return peer or "unknown"
