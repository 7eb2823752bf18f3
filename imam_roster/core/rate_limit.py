from typing import Optional, Protocol

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter


class RateLimiter(Protocol):
    """Capability the API needs from a limiter. Swap in a shared store for multi-instance deployments."""

    def allow(self, key: str) -> bool: ...

    def record_failure(self, key: str) -> None: ...

    def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """
    Moving-window limiter over failed attempts.
    A key is denied once it has `max_attempts` failures inside the last `window_seconds`.
    With the default memory storage, state lives in this process only and is lost on restart.
    """

    def __init__(self, max_attempts: int, window_seconds: int, storage: Optional[Storage] = None):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._item = RateLimitItemPerSecond(max_attempts, window_seconds)
        self._limiter = MovingWindowRateLimiter(storage or MemoryStorage())

    def allow(self, key: str) -> bool:
        return self._limiter.test(self._item, key)

    def record_failure(self, key: str) -> None:
        self._limiter.hit(self._item, key)

    def reset(self, key: str) -> None:
        self._limiter.clear(self._item, key)
