"""Request dispatch for the REST grammar.

Paths follow ``/<prefix>/{KV|DB}/{resource}[/{id}]``. The route strips the
prefix; the remaining path is parsed once into a :class:`ResourcePath`, then
the (kind, verb) pair selects a handler from :data:`HANDLERS`. Every outcome,
including failures, is returned as a JSON envelope.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from storage_gateway.api.responses import (
    error_response,
    internal_error_response,
    success_response,
)
from storage_gateway.errors import (
    EmptyInputError,
    GatewayError,
    InvalidBodyError,
    MalformedPathError,
    MethodNotAllowedError,
    MissingRequiredIdError,
)
from storage_gateway.kv import batch
from storage_gateway.kv.enumerator import list_all_keys
from storage_gateway.models.envelope import (
    KVKeysResponse,
    KVPutResponse,
    KVPutSummary,
    KVValueResponse,
    KVValuesResponse,
    MessageResponse,
)
from storage_gateway.observability import get_logger
from storage_gateway.sql import service

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse

    from storage_gateway.kv.registry import NamespaceRegistry
    from storage_gateway.sql.engine import RelationalStore

logger = get_logger(__name__)

USAGE = (
    "Invalid path. Expected format: /{prefix}/KV/{{KVNamespace}}[/{{key}}] "
    "or /{prefix}/DB/{{tableName}}[/{{id}}]"
)


class NamespaceKind(str, Enum):
    """Backend kind selected by the first segment after the prefix."""

    KV = "KV"
    DB = "DB"


@dataclass(frozen=True)
class ResourcePath:
    """Parsed request path."""

    kind: NamespaceKind
    resource: str
    item_id: str | None = None


def parse_path(path: str, prefix: str = "rest") -> ResourcePath:
    """Parse ``{KV|DB}/{resource}[/{id}]``, the part of the path below the prefix.

    Empty segments are ignored; segments after the id are ignored. ``prefix``
    only appears in the usage message.

    Raises:
        MalformedPathError: If fewer than two segments are present or the
            kind is neither ``KV`` nor ``DB``.
    """
    parts = [part for part in path.split("/") if part]
    usage = USAGE.format(prefix=prefix.strip("/"))
    if len(parts) < 2:
        raise MalformedPathError(usage)

    try:
        kind = NamespaceKind(parts[0])
    except ValueError as e:
        raise MalformedPathError(usage) from e

    return ResourcePath(kind=kind, resource=parts[1], item_id=parts[2] if len(parts) > 2 else None)


@dataclass
class RestRequest:
    """Everything a handler needs from the incoming HTTP request."""

    method: str
    path: ResourcePath
    query_items: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def query_value(self, name: str) -> str | None:
        """Last value of a query parameter, or None if absent."""
        value = None
        for key, item in self.query_items:
            if key == name:
                value = item
        return value

    def json_body(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.body.strip():
            return None
        try:
            return json.loads(self.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidBodyError(f"Invalid JSON body: {e}") from e


@dataclass
class Backends:
    """Storage collaborators resolved for a request."""

    store: RelationalStore
    registry: NamespaceRegistry


Handler = Callable[[RestRequest, Backends], Awaitable["JSONResponse"]]


async def kv_get(request: RestRequest, backends: Backends) -> JSONResponse:
    """Single-key read, multi-key read or full key listing."""
    namespace = request.path.resource

    if request.path.item_id is not None:
        value = await batch.get_one(backends.registry, namespace, request.path.item_id)
        return success_response(KVValueResponse(key=request.path.item_id, value=value))

    raw_keys = request.query_value("keys")
    if raw_keys is not None:
        keys = batch.parse_keys(raw_keys)
        if not keys:
            raise EmptyInputError("No keys specified. Use ?keys=key1,key2,key3")
        data = await batch.get_many(backends.registry, namespace, keys)
        return success_response(KVValuesResponse(namespace=namespace, data=data))

    names = await list_all_keys(backends.registry, namespace)
    return success_response(KVKeysResponse(namespace=namespace, keys=names, total=len(names)))


async def kv_put(request: RestRequest, backends: Backends) -> JSONResponse:
    """Multi-key write from a JSON object body."""
    namespace = request.path.resource
    keys = await batch.put_many(backends.registry, namespace, request.json_body())
    return success_response(
        KVPutResponse(namespace=namespace, data=KVPutSummary(processed=len(keys), keys=keys))
    )


async def db_fetch(request: RestRequest, backends: Backends) -> JSONResponse:
    """Row fetch with id, filters, sort and pagination."""
    result = await service.fetch_rows(
        backends.store, request.path.resource, request.path.item_id, request.query_items
    )
    return success_response(result.to_dict())


async def db_create(request: RestRequest, backends: Backends) -> JSONResponse:
    """Row insert; echoes the input record."""
    record = await service.create_row(backends.store, request.path.resource, request.json_body())
    return success_response(
        MessageResponse(message="Resource created successfully", data=record), status_code=201
    )


async def db_update(request: RestRequest, backends: Backends) -> JSONResponse:
    """Row update by id; echoes the input record."""
    if request.path.item_id is None:
        raise MissingRequiredIdError("ID is required for updates")
    record = await service.update_row(
        backends.store, request.path.resource, request.path.item_id, request.json_body()
    )
    return success_response(MessageResponse(message="Resource updated successfully", data=record))


async def db_delete(request: RestRequest, backends: Backends) -> JSONResponse:
    """Row delete by id."""
    if request.path.item_id is None:
        raise MissingRequiredIdError("ID is required for deletion")
    await service.delete_row(backends.store, request.path.resource, request.path.item_id)
    return success_response(MessageResponse(message="Resource deleted successfully"))


HANDLERS: dict[tuple[NamespaceKind, str], Handler] = {
    (NamespaceKind.KV, "GET"): kv_get,
    (NamespaceKind.KV, "PUT"): kv_put,
    (NamespaceKind.DB, "GET"): db_fetch,
    (NamespaceKind.DB, "POST"): db_create,
    (NamespaceKind.DB, "PUT"): db_update,
    (NamespaceKind.DB, "PATCH"): db_update,
    (NamespaceKind.DB, "DELETE"): db_delete,
}

_NOT_ALLOWED = {
    NamespaceKind.KV: (
        "KV method not allowed. Expected format: /{prefix}/KV/{{KVNamespace}}[/{{key}}]"
    ),
    NamespaceKind.DB: "Method not allowed",
}


def resolve_handler(kind: NamespaceKind, method: str, prefix: str = "rest") -> Handler:
    """Look up the handler for a (kind, verb) pair.

    Raises:
        MethodNotAllowedError: If the verb is not mapped for the kind.
    """
    handler = HANDLERS.get((kind, method.upper()))
    if handler is None:
        raise MethodNotAllowedError(_NOT_ALLOWED[kind].format(prefix=prefix.strip("/")))
    return handler


async def dispatch(
    method: str,
    path: str,
    query_items: list[tuple[str, str]],
    body: bytes,
    backends: Backends,
    prefix: str = "rest",
) -> JSONResponse:
    """Route one request to its handler and render the outcome.

    Args:
        method: HTTP verb.
        path: Request path below the prefix, e.g. ``KV/ns/key``.
        query_items: Query-string pairs in request order.
        body: Raw request body.
        backends: Storage collaborators.
        prefix: Route prefix, used in usage messages.

    Returns:
        Success or error envelope. Never raises.
    """
    try:
        resource_path = parse_path(path, prefix)
        handler = resolve_handler(resource_path.kind, method, prefix)
        request = RestRequest(
            method=method.upper(), path=resource_path, query_items=query_items, body=body
        )
        return await handler(request, backends)
    except GatewayError as e:
        logger.info(
            "rest_request_rejected",
            method=method,
            path=path,
            status=e.status_code,
            error=e.message,
        )
        return error_response(e)
    except Exception as e:
        logger.exception("rest_request_failed", method=method, path=path)
        return internal_error_response(e)
