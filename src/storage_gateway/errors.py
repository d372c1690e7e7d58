"""Error taxonomy for the REST translation layer.

Every error carries the HTTP status it maps to and optional context
(namespace, keys, key) that is echoed in the error envelope.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for errors rendered as an error envelope."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_body(self) -> dict[str, Any]:
        """Build the JSON body for this error."""
        return {"error": self.message, **self.context}


class MalformedPathError(GatewayError):
    """Raised when the request path does not follow the REST grammar."""

    status_code = 400


class InvalidBodyError(GatewayError):
    """Raised when a request body is missing or is not a JSON object."""

    status_code = 400


class MissingRequiredIdError(GatewayError):
    """Raised when an update or delete has no row id."""

    status_code = 400


class InvalidNamespaceError(GatewayError):
    """Raised when a KV namespace name has no configured binding."""

    status_code = 400


class EmptyInputError(GatewayError):
    """Raised when no keys or no data were supplied."""

    status_code = 400


class InvalidIdentifierError(GatewayError):
    """Raised when a table or column name is empty after sanitization."""

    status_code = 400


class InvalidPaginationError(GatewayError):
    """Raised when limit or offset is not a non-negative integer."""

    status_code = 400


class NotFoundError(GatewayError):
    """Raised when a key is absent or a multi-get resolves no values."""

    status_code = 404


class MethodNotAllowedError(GatewayError):
    """Raised when a verb is not mapped for the namespace kind."""

    status_code = 405


class BackendFailureError(GatewayError):
    """Raised when a storage call fails; the backend message is kept verbatim."""

    status_code = 500


class EnumerationLimitExceededError(GatewayError):
    """Raised when key enumeration reads more pages than allowed."""

    status_code = 500
