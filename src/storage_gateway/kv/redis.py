"""Redis key-value namespace for distributed deployments."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from redis.asyncio import Redis

from .store import KeyInfo, KeyListResult, KVNamespace

logger = logging.getLogger(__name__)

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


def _escape_glob(text: str) -> str:
    return _GLOB_SPECIALS.sub(r"\\\1", text)


def sanitize_url(url: str) -> str:
    """Remove password from URL for logging."""
    return re.sub(r":([^:@/]+)@", r":***@", url)


def connect(redis_url: str) -> Redis:
    """Create a Redis client shared by every namespace of a registry."""
    logger.info("Connecting to Redis: %s", sanitize_url(redis_url))
    return Redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


class RedisKVNamespace(KVNamespace):
    """Namespace stored as ``<prefix>:<namespace>:<key>`` entries in Redis.

    Listing maps onto ``SCAN``: the Redis cursor is the continuation token and
    a returned cursor of ``0`` marks the listing complete. ``SCAN`` can return
    empty pages before it is done and may repeat a key across pages.
    """

    def __init__(self, name: str, client: Redis, key_prefix: str = "kv") -> None:
        super().__init__(name)
        self._client = client
        self._prefix = f"{key_prefix}:{name}:"

    def _make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._make_key(key))

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        if not keys:
            return []
        return list(await self._client.mget([self._make_key(key) for key in keys]))

    async def put(self, key: str, value: str) -> None:
        await self._client.set(self._make_key(key), value)

    async def list(self, cursor: str | None = None, limit: int | None = None) -> KeyListResult:
        try:
            scan_cursor = int(cursor) if cursor else 0
        except ValueError as e:
            raise ValueError(f"Invalid list cursor: {cursor}") from e

        next_cursor, raw_keys = await self._client.scan(
            cursor=scan_cursor,
            match=f"{_escape_glob(self._prefix)}*",
            count=limit,
        )
        list_complete = int(next_cursor) == 0
        prefix_len = len(self._prefix)

        return KeyListResult(
            keys=[KeyInfo(name=raw[prefix_len:]) for raw in raw_keys],
            cursor=None if list_complete else str(next_cursor),
            list_complete=list_complete,
        )
