# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import fnmatch
import json
import time
from collections.abc import Callable
from typing import Any

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError


class TTL:
    """Common cache lifetimes in seconds."""

    SHORT = 60
    MEDIUM = 300
    LONG = 3600
    VERY_LONG = 86400


class MemoryCache:
    """In-process TTL store used when Redis is not configured or unreachable."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (now + ttl, value)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()


class Cache:
    """Key/value cache with TTL, backed by Redis with fallback to memory.

    Values are stored as JSON. The first Redis failure switches the instance to
    the in-process store for the rest of its lifetime.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        default_ttl: int = TTL.MEDIUM,
        namespace: str = "career-relay",
        client: Redis | None = None,
    ):
        """Initializes the Cache.

        Args:
            redis_url: Redis connection URL. Without it (or a client) only memory is used.
            default_ttl: TTL applied when ``set`` is called without one.
            namespace: Prefix prepended to every key.
            client: Optional pre-built Redis client.
        """
        self.default_ttl = default_ttl
        self.namespace = namespace
        self.memory = MemoryCache()
        self._client = client
        if self._client is None and redis_url:
            self._client = Redis.from_url(redis_url, decode_responses=True)
        if self._client is None:
            logger.info("No Redis configured, using in-memory cache")

    @property
    def using_memory(self) -> bool:
        return self._client is None

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _fall_back(self, operation: str, error: Exception) -> None:
        logger.error(f"Cache {operation} failed on Redis, falling back to in-memory cache: {error}")
        self._client = None

    async def get(self, key: str) -> Any | None:
        if self._client is not None:
            try:
                data = await self._client.get(self._key(key))
                return json.loads(data) if data is not None else None
            except (RedisError, OSError) as e:
                self._fall_back("get", e)
        return await self.memory.get(self._key(key))

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = ttl or self.default_ttl
        if self._client is not None:
            try:
                await self._client.set(self._key(key), json.dumps(value), ex=ttl)
                return
            except (RedisError, OSError) as e:
                self._fall_back("set", e)
        await self.memory.set(self._key(key), value, ttl)

    async def delete(self, key: str) -> None:
        if self._client is not None:
            try:
                await self._client.delete(self._key(key))
                return
            except (RedisError, OSError) as e:
                self._fall_back("delete", e)
        await self.memory.delete(self._key(key))

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern`` within the namespace."""
        if self._client is not None:
            try:
                keys = [k async for k in self._client.scan_iter(match=self._key(pattern))]
                if keys:
                    await self._client.delete(*keys)
                return len(keys)
            except (RedisError, OSError) as e:
                self._fall_back("delete_pattern", e)
        return await self.memory.delete_pattern(self._key(pattern))

    async def clear(self) -> None:
        await self.delete_pattern("*")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
