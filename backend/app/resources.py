"""Process-wide resource handles.

The API and the worker each build one ``Resources`` at startup and pass its
members to the components that need them. Nothing else opens database,
Redis or HTTP connections.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app.config import Settings
from db.database import create_db_engine, create_session_factory
from workflow.queue import RunQueue, build_run_queue


@dataclass
class Resources:
    settings: Settings
    db_engine: AsyncEngine
    session_factory: async_sessionmaker
    queue: RunQueue
    http_client: httpx.AsyncClient
    redis_client: Optional[aioredis.Redis] = None

    @classmethod
    def open(cls, settings: Settings) -> "Resources":
        """Create every handle from settings. Connections are made lazily."""
        db_engine = create_db_engine(settings)
        redis_client = None
        if settings.RUN_QUEUE_BACKEND.lower() == "redis":
            redis_client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(
            settings=settings,
            db_engine=db_engine,
            session_factory=create_session_factory(db_engine),
            queue=build_run_queue(settings, redis_client),
            http_client=httpx.AsyncClient(timeout=settings.HTTP_NODE_TIMEOUT),
            redis_client=redis_client,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        await self.db_engine.dispose()
