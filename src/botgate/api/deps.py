"""Shared FastAPI dependencies for database sessions, Redis, services, and the job queue."""

from collections.abc import AsyncGenerator
from typing import Any, Callable

from fastapi import Depends, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from botgate.config import Settings, get_settings
from botgate.services.integration_service import IntegrationService
from botgate.services.message_service import MessageService

Enqueuer = Callable[[str, str, dict[str, Any]], str]


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session from the app-level session factory.

    The session factory is stored on ``request.app.state.session_factory``
    by the application lifespan. The session auto-closes when the request ends.
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_redis(request: Request) -> Redis:
    """Return the async Redis client stored on app state."""
    return request.app.state.redis


async def get_integration_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IntegrationService:
    """Provide an IntegrationService with the current DB session."""
    return IntegrationService(db, settings)


async def get_message_service(
    db: AsyncSession = Depends(get_db),
) -> MessageService:
    """Provide a MessageService instance with the current DB session."""
    return MessageService(db)


def get_enqueuer() -> Enqueuer:
    """Return the callable that publishes webhook jobs to the Celery broker.

    Imported lazily so the API process only builds the Celery app when a
    webhook actually arrives.
    """
    from botgate.tasks.inbound import enqueue_inbound

    return enqueue_inbound
