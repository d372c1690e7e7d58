"""Response envelopes for the REST routes.

Success bodies carry a ``success`` or ``message`` field plus the relevant
data; error bodies carry ``error`` plus any diagnostic context.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error envelope. Extra fields (namespace, keys, key) are kept as context."""

    model_config = ConfigDict(extra="allow")

    error: str = Field(..., description="Error message describing what went wrong.")


class MessageResponse(BaseModel):
    """Envelope for DB writes."""

    message: str = Field(..., description="Human-readable outcome.")
    data: dict[str, Any] | None = Field(
        default=None, description="The input record, echoed back."
    )


class KVValueResponse(BaseModel):
    """Envelope for a single-key read."""

    key: str = Field(..., description="Requested key.")
    value: str = Field(..., description="Stored value.")


class KVValuesResponse(BaseModel):
    """Envelope for a multi-key read."""

    success: bool = Field(default=True)
    namespace: str = Field(..., description="KV namespace name.")
    data: dict[str, str] = Field(..., description="Found keys mapped to their values.")


class KVPutSummary(BaseModel):
    """What a multi-key write processed."""

    processed: int = Field(..., description="Number of entries written.")
    keys: list[str] = Field(..., description="Keys written, in body order.")


class KVPutResponse(BaseModel):
    """Envelope for a multi-key write."""

    success: bool = Field(default=True)
    namespace: str = Field(..., description="KV namespace name.")
    data: KVPutSummary


class KVKeysResponse(BaseModel):
    """Envelope for a full key listing."""

    success: bool = Field(default=True)
    namespace: str = Field(..., description="KV namespace name.")
    keys: list[str] = Field(..., description="Every key in the namespace.")
    total: int = Field(..., description="Number of keys.")
