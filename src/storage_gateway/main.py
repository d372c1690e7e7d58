"""Main entry point for Storage Gateway."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from storage_gateway import __version__
from storage_gateway.api.routes.health import router as health_router
from storage_gateway.api.routes.rest import create_rest_router
from storage_gateway.config import get_settings
from storage_gateway.kv.registry import get_registry, reset_registry
from storage_gateway.observability import get_logger, setup_opentelemetry, shutdown_opentelemetry
from storage_gateway.sql.engine import get_engine, reset_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - setup and shutdown."""
    setup_opentelemetry(app)
    logger = get_logger(__name__)

    get_engine().initialize()
    registry = get_registry()
    logger.info("storage_gateway_started", namespaces=registry.names)

    yield

    await registry.close()
    reset_registry()
    reset_engine()
    shutdown_opentelemetry()


def create_app() -> FastAPI:
    """Build the FastAPI application from the current settings."""
    settings = get_settings()

    application = FastAPI(
        title="Storage Gateway",
        description="Uniform REST access to relational tables and key-value namespaces",
        version=__version__,
        lifespan=lifespan,
    )

    application.include_router(health_router)
    application.include_router(create_rest_router(settings.api.prefix))
    return application


app = create_app()


def main() -> None:
    """Run the application server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
