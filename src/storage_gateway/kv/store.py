"""Key-value namespace abstraction shared by all KV backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class KeyInfo:
    """A key returned by a listing page."""

    name: str


@dataclass(frozen=True)
class KeyListResult:
    """One page of a key listing.

    ``list_complete`` is the only end-of-listing signal: a page may be empty,
    or carry no cursor, while more keys remain.
    """

    keys: list[KeyInfo] = field(default_factory=list)
    cursor: str | None = None
    list_complete: bool = False


class KVNamespace(ABC):
    """Abstract base class for a named key-value namespace."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a value.

        Args:
            key: Key to read

        Returns:
            Stored value or None if the key is absent
        """
        ...

    @abstractmethod
    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        """Get several values at once.

        Args:
            keys: Keys to read

        Returns:
            Values positionally aligned with ``keys``, None where absent
        """
        ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Args:
            key: Key to write
            value: Value to store
        """
        ...

    @abstractmethod
    async def list(self, cursor: str | None = None, limit: int | None = None) -> KeyListResult:
        """List one page of keys.

        Args:
            cursor: Cursor from the previous page, None for the first page
            limit: Requested page size (a hint; backends may return fewer)

        Returns:
            The page, with the cursor for the next call
        """
        ...

    async def close(self) -> None:
        """Release backend resources held by this namespace."""
