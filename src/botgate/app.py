"""FastAPI application factory with async lifespan for DB and Redis."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from botgate.api.v1.router import v1_router
from botgate.api.webhooks.router import router as webhooks_router
from botgate.config import get_settings
from botgate.database import close_db, get_session_factory, init_db
from botgate.logging_config import setup_logging
from botgate.redis import close_redis, init_redis


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    On startup: initialize database engine, session factory and Redis client.
    On shutdown: close Redis, then the database.
    """
    settings = get_settings()

    engine = await init_db(settings.database_url)
    app.state.db_engine = engine
    app.state.session_factory = get_session_factory(engine)
    app.state.redis = await init_redis(settings.redis_url)

    yield

    await close_redis(app.state.redis)
    await close_db(engine)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This is the app factory. Uvicorn calls it with the --factory flag:
        uvicorn botgate.app:create_app --factory
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title="Botgate",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    app.include_router(v1_router, prefix=settings.api_prefix)

    # Platform webhooks mounted at root (not under the API prefix) because
    # their callback URLs are registered with the platforms once at setup.
    app.include_router(webhooks_router, tags=["webhooks"])

    return app
