"""Models package for Storage Gateway."""

from storage_gateway.models.envelope import (
    ErrorResponse,
    KVKeysResponse,
    KVPutResponse,
    KVPutSummary,
    KVValueResponse,
    KVValuesResponse,
    MessageResponse,
)

__all__ = [
    "ErrorResponse",
    "KVKeysResponse",
    "KVPutResponse",
    "KVPutSummary",
    "KVValueResponse",
    "KVValuesResponse",
    "MessageResponse",
]
