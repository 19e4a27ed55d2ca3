from __future__ import annotations

from limits import RateLimitItem, parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter

from klevr.errors import RateLimitError


class UserRateLimiter:
    """Moving-window limit on model calls, keyed by user id."""

    def __init__(self, limit: str | RateLimitItem = "60/minute", storage: Storage | None = None):
        self.item = parse(limit) if isinstance(limit, str) else limit
        self.storage = storage or MemoryStorage()
        self.strategy = MovingWindowRateLimiter(self.storage)

    def acquire(self, user_id: str) -> None:
        if not self.strategy.hit(self.item, "llm", user_id):
            raise RateLimitError()

    def remaining(self, user_id: str) -> int:
        return self.strategy.get_window_stats(self.item, "llm", user_id).remaining

    def reset(self) -> None:
        self.storage.reset()
