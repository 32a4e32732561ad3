"""FastAPI dependency injection functions."""

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.resources import Resources
from workflow.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


def get_resources(request: Request) -> Resources:
    """Resource handles created at application startup."""
    return request.app.state.resources


async def get_db(resources: Resources = Depends(get_resources)) -> AsyncSession:
    """
    Provide a database session for API endpoints.

    Yields an async SQLAlchemy session that is automatically
    committed on success or rolled back on error.
    """
    async with resources.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Database error: {str(e)}")
            await session.rollback()
            raise


def get_dispatcher(resources: Resources = Depends(get_resources)) -> Dispatcher:
    return Dispatcher(resources.session_factory, resources.queue)
