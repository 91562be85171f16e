# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Protocol

import anyio


class RateLimiter(Protocol):
    """Protocol for throttles shared by concurrent callers of an external API."""

    async def acquire(self) -> None:
        """Wait until one call is allowed."""
        ...


class TokenBucket:
    """Async token bucket.

    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    Callers queue on a lock, so at most ``capacity`` calls can pass in a burst
    regardless of how many workers are waiting.
    """

    def __init__(self, rate: float, capacity: int = 1):
        """Initializes the TokenBucket.

        Args:
            rate: Tokens added per second. Must be positive.
            capacity: Maximum number of stored tokens (burst size).
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._tokens = float(capacity)
        self._updated: float | None = None
        self._lock = anyio.Lock()

    def _refill(self, now: float) -> None:
        if self._updated is not None:
            self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill(anyio.current_time())
            if self._tokens < 1:
                await anyio.sleep((1 - self._tokens) / self.rate)
                self._refill(anyio.current_time())
            self._tokens -= 1


class Unlimited:
    """A limiter that never waits."""

    async def acquire(self) -> None:
        return None
