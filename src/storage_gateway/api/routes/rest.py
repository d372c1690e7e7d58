"""REST routes exposing the KV and DB translation layer.

Provides one catch-all route per prefix:
- /<prefix>/KV/{namespace}[/{key}] - key-value reads, writes and listing
- /<prefix>/DB/{table}[/{id}] - row fetch, create, update and delete
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storage_gateway.api.dispatch import Backends, dispatch
from storage_gateway.kv.registry import get_registry
from storage_gateway.sql.engine import get_engine

ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_rest_router(prefix: str = "rest") -> APIRouter:
    """Create the router serving ``/<prefix>`` and everything below it.

    Args:
        prefix: Path below which every REST route is served, e.g. ``rest`` or
            ``api/v1``.

    Returns:
        Router to include in the application.
    """
    prefix = prefix.strip("/")
    router = APIRouter(prefix=f"/{prefix}", tags=["rest"])

    async def handle_rest(request: Request) -> JSONResponse:
        """Translate a REST request into a storage operation."""
        engine = get_engine()
        if not engine.is_initialized:
            engine.initialize()

        return await dispatch(
            method=request.method,
            path=request.path_params.get("path", ""),
            query_items=request.query_params.multi_items(),
            body=await request.body(),
            backends=Backends(store=engine, registry=get_registry()),
            prefix=prefix,
        )

    router.add_api_route("", handle_rest, methods=ROUTED_METHODS, include_in_schema=False)
    router.add_api_route(
        "/{path:path}", handle_rest, methods=ROUTED_METHODS, summary="REST storage operation"
    )
    return router
