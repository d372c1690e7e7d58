"""Batch reads and writes against a named KV namespace.

All input checks (keys present, body shape, namespace bound) run before the
first backend call. Backend exceptions surface as
:class:`BackendFailureError` with the namespace and keys attached.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from storage_gateway.errors import (
    BackendFailureError,
    EmptyInputError,
    InvalidBodyError,
    NotFoundError,
)
from storage_gateway.observability import get_logger, track_backend_call

if TYPE_CHECKING:
    from storage_gateway.kv.registry import NamespaceRegistry

logger = get_logger(__name__)


def parse_keys(raw: str | None) -> list[str]:
    """Split a comma-separated ``keys`` parameter, trimming and dropping empties."""
    if not raw:
        return []
    return [key.strip() for key in raw.split(",") if key.strip()]


def encode_value(value: Any) -> str:
    """Strings are stored as-is; any other JSON value is stored as its JSON text."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


async def get_one(registry: NamespaceRegistry, namespace_name: str, key: str) -> str:
    """Read a single key.

    Raises:
        InvalidNamespaceError: If the namespace is not bound.
        NotFoundError: If the key is absent.
        BackendFailureError: If the backend call fails.
    """
    namespace = registry.resolve(namespace_name)
    try:
        with track_backend_call("kv", "get"):
            value = await namespace.get(key)
    except Exception as e:
        logger.warning("kv_get_failed", namespace=namespace_name, key=key, error=str(e))
        raise BackendFailureError(str(e), namespace=namespace_name, key=key) from e

    if value is None:
        raise NotFoundError("Key not found", namespace=namespace_name, key=key)
    return value


async def get_many(
    registry: NamespaceRegistry, namespace_name: str, keys: list[str]
) -> dict[str, str]:
    """Read several keys and keep only the ones that resolved to a value.

    Args:
        registry: Namespace registry.
        namespace_name: Namespace binding name.
        keys: Keys to read, in request order.

    Returns:
        Mapping of found keys to values, in request order.

    Raises:
        EmptyInputError: If ``keys`` is empty.
        InvalidNamespaceError: If the namespace is not bound.
        NotFoundError: If none of the keys has a value.
        BackendFailureError: If the backend call fails.
    """
    if not keys:
        raise EmptyInputError("No keys provided")

    namespace = registry.resolve(namespace_name)
    try:
        with track_backend_call("kv", "get_many"):
            values = await namespace.get_many(keys)
    except Exception as e:
        logger.warning("kv_get_many_failed", namespace=namespace_name, keys=keys, error=str(e))
        raise BackendFailureError(str(e), namespace=namespace_name, keys=keys) from e

    if len(values) != len(keys):
        raise BackendFailureError(
            f"Backend returned {len(values)} values for {len(keys)} keys",
            namespace=namespace_name,
            keys=keys,
        )

    found = {key: value for key, value in zip(keys, values) if value is not None}
    if not found:
        raise NotFoundError("No values found", namespace=namespace_name, keys=keys)
    return found


async def put_many(registry: NamespaceRegistry, namespace_name: str, body: Any) -> list[str]:
    """Write every entry of a JSON object body concurrently.

    Writes are not ordered and not rolled back: when one fails the whole
    operation fails, and entries already written stay written.

    Returns:
        The keys written, in body order.

    Raises:
        EmptyInputError: If the body is missing or empty.
        InvalidBodyError: If the body is not a JSON object.
        InvalidNamespaceError: If the namespace is not bound.
        BackendFailureError: If any write fails.
    """
    if body is None or (isinstance(body, (dict, list)) and not body):
        raise EmptyInputError("No data provided")
    if not isinstance(body, dict):
        raise InvalidBodyError("Invalid data format", namespace=namespace_name)

    namespace = registry.resolve(namespace_name)
    entries = [(str(key), encode_value(value)) for key, value in body.items()]
    try:
        with track_backend_call("kv", "put_many"):
            await asyncio.gather(*(namespace.put(key, value) for key, value in entries))
    except Exception as e:
        logger.warning("kv_put_many_failed", namespace=namespace_name, error=str(e))
        raise BackendFailureError(str(e), namespace=namespace_name) from e

    logger.info("kv_put_many", namespace=namespace_name, processed=len(entries))
    return [key for key, _ in entries]
