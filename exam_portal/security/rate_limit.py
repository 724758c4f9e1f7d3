import threading
import time
from typing import Dict, List

from fastapi import HTTPException, Request, status


class RateLimiter:
    """In-memory sliding window rate limiter keyed by client address."""

    def __init__(self, limit: int = 60, window_seconds: int = 60) -> None:
        self.limit = limit
        self.window = window_seconds
        self._lock = threading.Lock()
        self._requests: Dict[str, List[float]] = {}

    def __call__(self, request: Request) -> None:
        client_key = request.client.host if request.client else "anonymous"
        self.hit(client_key)

    def hit(self, key: str) -> None:
        now = time.time()
        window_start = now - self.window
        with self._lock:
            timestamps = self._requests.get(key, [])
            timestamps = [ts for ts in timestamps if ts >= window_start]
            if len(timestamps) >= self.limit:
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit exceeded ({self.limit} requests/{self.window}s)",
                )
            timestamps.append(now)
            self._requests[key] = timestamps

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
