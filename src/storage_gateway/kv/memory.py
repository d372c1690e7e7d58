"""In-memory key-value namespace for development and testing."""

from __future__ import annotations

import asyncio
import base64
import bisect
import logging
from collections.abc import Sequence

from .store import KeyInfo, KeyListResult, KVNamespace

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


def _encode_cursor(last_key: str) -> str:
    return base64.urlsafe_b64encode(last_key.encode("utf-8")).decode("ascii")


def _decode_cursor(cursor: str) -> str:
    try:
        return base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid list cursor: {cursor}") from e


class MemoryKVNamespace(KVNamespace):
    """Dictionary-backed namespace.

    Keys are listed in sorted order; the cursor encodes the last key of the
    previous page, so keys written between pages are still picked up if they
    sort after it. Suitable for single-process deployments and tests.
    """

    def __init__(self, name: str, data: dict[str, str] | None = None) -> None:
        super().__init__(name)
        self._data: dict[str, str] = dict(data or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        return [self._data.get(key) for key in keys]

    async def put(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = value

    async def list(self, cursor: str | None = None, limit: int | None = None) -> KeyListResult:
        page_size = limit or DEFAULT_PAGE_SIZE
        ordered = sorted(self._data)

        start = 0
        if cursor:
            start = bisect.bisect_right(ordered, _decode_cursor(cursor))

        page = ordered[start : start + page_size]
        list_complete = start + page_size >= len(ordered)
        next_cursor = None if list_complete or not page else _encode_cursor(page[-1])

        return KeyListResult(
            keys=[KeyInfo(name=key) for key in page],
            cursor=next_cursor,
            list_complete=list_complete,
        )

    async def close(self) -> None:
        logger.debug("Closing in-memory KV namespace %s (%d keys)", self.name, len(self._data))
