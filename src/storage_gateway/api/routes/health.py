"""Health and readiness endpoints for monitoring.

Provides:
- GET /health - Returns application health status
- GET /ready - Returns readiness for traffic
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from storage_gateway import __version__
from storage_gateway.kv.registry import get_registry
from storage_gateway.sql.engine import get_engine

router = APIRouter(tags=["health"])


class ComponentHealth(BaseModel):
    """Health status of a component."""

    healthy: bool = Field(..., description="Whether the component is healthy.")
    error: str | None = Field(default=None, description="Error message if unhealthy.")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(..., description="Overall status: healthy, degraded, or unhealthy.")
    version: str = Field(..., description="Application version.")
    components: dict[str, ComponentHealth] = Field(
        ...,
        description="Health status of individual components.",
    )


class ReadyResponse(BaseModel):
    """Response for readiness check endpoint."""

    ready: bool = Field(..., description="Whether the application is ready for traffic.")
    reason: str | None = Field(default=None, description="Reason if not ready.")


def _database_health() -> ComponentHealth:
    try:
        engine = get_engine()
        if not engine.is_initialized:
            engine.initialize()
        engine_health = engine.health_check()
    except Exception as e:
        return ComponentHealth(healthy=False, error=str(e))

    healthy = bool(engine_health.get("healthy", False))
    return ComponentHealth(
        healthy=healthy,
        error=None if healthy else str(engine_health.get("error", "Health check failed")),
    )


def _kv_health() -> ComponentHealth:
    try:
        registry = get_registry()
    except Exception as e:
        return ComponentHealth(healthy=False, error=str(e))

    if not registry.names:
        return ComponentHealth(healthy=False, error="No KV namespaces configured")
    return ComponentHealth(healthy=True)


@router.get("/health", response_model=HealthResponse)
async def health_check(response: Response) -> HealthResponse:
    """Check application health.

    Returns the overall health status along with component-level health.
    Checks DuckDB connectivity and the KV namespace registry.

    Returns:
        HealthResponse with status, version, and component health.
        Returns 503 status code if unhealthy.
    """
    components = {"database": _database_health(), "kv": _kv_health()}

    if all(c.healthy for c in components.values()):
        status = "healthy"
    elif any(c.healthy for c in components.values()):
        status = "degraded"
        response.status_code = 503
    else:
        status = "unhealthy"
        response.status_code = 503

    return HealthResponse(
        status=status,
        version=__version__,
        components=components,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(response: Response) -> ReadyResponse:
    """Check application readiness for traffic.

    Requires the database engine to be initialized and healthy and at least
    one KV namespace to be registered.

    Returns:
        ReadyResponse with ready status.
        Returns 503 status code if not ready.
    """
    try:
        engine = get_engine()
        if not engine.is_initialized:
            response.status_code = 503
            return ReadyResponse(ready=False, reason="Engine not initialized")

        engine_health = engine.health_check()
        if not engine_health.get("healthy", False):
            response.status_code = 503
            return ReadyResponse(
                ready=False,
                reason=str(engine_health.get("error", "Health check failed")),
            )

        if not get_registry().names:
            response.status_code = 503
            return ReadyResponse(ready=False, reason="No KV namespaces configured")

        return ReadyResponse(ready=True)

    except Exception as e:
        response.status_code = 503
        return ReadyResponse(ready=False, reason=str(e))
