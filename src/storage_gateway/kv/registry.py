"""Registry resolving KV namespace names to backend handles.

The registry is populated once at startup from ``kv.namespaces`` and is only
read afterwards. Looking up a name with no binding raises
:class:`InvalidNamespaceError` instead of failing inside a backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from storage_gateway.config import KVBackendType, get_settings
from storage_gateway.errors import InvalidNamespaceError
from storage_gateway.kv import redis as redis_backend
from storage_gateway.kv.memory import MemoryKVNamespace

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from storage_gateway.config import Settings
    from storage_gateway.kv.store import KVNamespace

logger = logging.getLogger(__name__)


class NamespaceRegistry:
    """Mapping from namespace name to :class:`KVNamespace` handle."""

    def __init__(
        self, namespaces: Iterable[KVNamespace] = (), client: Redis | None = None
    ) -> None:
        """Initialize the registry.

        Args:
            namespaces: Namespace handles to register, keyed by their name.
            client: Shared Redis client to close with the registry, if any.
        """
        self._namespaces: dict[str, KVNamespace] = {}
        self._client = client
        for namespace in namespaces:
            self.register(namespace)

    def register(self, namespace: KVNamespace) -> None:
        """Add a namespace, replacing any handle with the same name."""
        self._namespaces[namespace.name] = namespace

    def resolve(self, name: str) -> KVNamespace:
        """Get the handle bound to ``name``.

        Raises:
            InvalidNamespaceError: If no namespace is bound to the name.
        """
        namespace = self._namespaces.get(name)
        if namespace is None:
            raise InvalidNamespaceError("Invalid KV namespace", namespace=name)
        return namespace

    def __contains__(self, name: object) -> bool:
        return name in self._namespaces

    @property
    def names(self) -> list[str]:
        """Registered namespace names."""
        return list(self._namespaces)

    async def close(self) -> None:
        """Close every namespace and the shared backend client."""
        for namespace in self._namespaces.values():
            await namespace.close()
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_registry(settings: Settings | None = None) -> NamespaceRegistry:
    """Create a registry holding one handle per configured namespace.

    Args:
        settings: Application settings. If None, uses cached settings.

    Returns:
        Registry for the configured backend.
    """
    settings = settings or get_settings()
    kv_config = settings.kv

    if kv_config.backend == KVBackendType.REDIS:
        client = redis_backend.connect(kv_config.redis_url)
        namespaces: list[KVNamespace] = [
            redis_backend.RedisKVNamespace(name, client, key_prefix=kv_config.key_prefix)
            for name in kv_config.namespaces
        ]
        registry = NamespaceRegistry(namespaces, client=client)
    else:
        registry = NamespaceRegistry(MemoryKVNamespace(name) for name in kv_config.namespaces)

    logger.info(
        "KV namespaces registered: backend=%s names=%s",
        kv_config.backend.value,
        ",".join(registry.names),
    )
    return registry


_registry: NamespaceRegistry | None = None


def get_registry() -> NamespaceRegistry:
    """Get the global namespace registry (cached).

    Returns:
        The global NamespaceRegistry.
    """
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry


def reset_registry() -> None:
    """Drop the global registry (useful for testing)."""
    global _registry
    _registry = None
