"""Envelope rendering shared by the REST dispatcher and exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storage_gateway.errors import GatewayError
from storage_gateway.models.envelope import ErrorResponse


def success_response(body: BaseModel | dict[str, Any], status_code: int = 200) -> JSONResponse:
    """Render a success envelope.

    Args:
        body: Envelope model, or a plain mapping such as backend result rows.
        status_code: HTTP status, 200 unless a resource was created.
    """
    if isinstance(body, BaseModel):
        content = body.model_dump(mode="json", exclude_none=True)
    else:
        content = jsonable_encoder(body)
    return JSONResponse(content=content, status_code=status_code)


def error_response(error: GatewayError) -> JSONResponse:
    """Render a :class:`GatewayError` as ``{"error": ..., **context}``."""
    body = ErrorResponse(**error.to_body())
    return JSONResponse(
        content=jsonable_encoder(body.model_dump()),
        status_code=error.status_code,
    )


def internal_error_response(exc: Exception) -> JSONResponse:
    """Render an unexpected exception as a 500 envelope carrying its message."""
    return JSONResponse(content={"error": str(exc) or type(exc).__name__}, status_code=500)
