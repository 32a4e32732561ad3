"""Run queue: durable FIFO hand-off of run ids from producers to workers.

Entries are JSON documents ``{"runId": "<uuid>"}``. Producers push on the
left and consumers pop from the right, so the list is FIFO.

Delivery: an entry is removed at the moment it is handed to a consumer,
before the run is processed. There is no claim/ack step, so a worker that
dies between ``dequeue()`` and persisting the terminal state loses that job;
the run row stays ``queued`` or ``running`` and nothing re-delivers it.
"""

import json
from collections import deque
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from app.config import Settings
from core.constants import DEFAULT_RUN_QUEUE_KEY
from core.exceptions import MalformedJobError, QueueUnavailableError

logger = structlog.get_logger(__name__)


class RunQueue(Protocol):
    """Contract shared by every queue backend."""

    async def enqueue(self, run_id: str) -> None:
        """Append a run id to the tail. Never waits for a consumer."""
        ...

    async def dequeue(self) -> Optional[str]:
        """Remove and return the head run id, or ``None`` if the queue is empty."""
        ...


def encode_job(run_id: str) -> str:
    return json.dumps({"runId": run_id})


def decode_job(raw: Any) -> str:
    """Extract the run id from a queue entry.

    Raises:
        MalformedJobError: If the entry is not a JSON object with a ``runId`` string
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        job = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedJobError(f"Queue entry is not JSON: {raw!r}") from e

    run_id = job.get("runId") if isinstance(job, dict) else None
    if not isinstance(run_id, str) or not run_id:
        raise MalformedJobError(f"Queue entry has no runId: {raw!r}")
    return run_id


class RedisRunQueue:
    """Run queue stored in a Redis list."""

    def __init__(self, client: aioredis.Redis, key: str = DEFAULT_RUN_QUEUE_KEY):
        self.client = client
        self.key = key

    async def enqueue(self, run_id: str) -> None:
        try:
            await self.client.lpush(self.key, encode_job(run_id))
        except RedisError as e:
            raise QueueUnavailableError(f"Could not enqueue run {run_id}: {e}") from e

    async def dequeue(self) -> Optional[str]:
        try:
            raw = await self.client.rpop(self.key)
        except RedisError as e:
            raise QueueUnavailableError(f"Could not poll run queue: {e}") from e
        if raw is None:
            return None
        return decode_job(raw)

    async def length(self) -> int:
        try:
            return await self.client.llen(self.key)
        except RedisError as e:
            raise QueueUnavailableError(f"Could not read run queue length: {e}") from e


class InMemoryRunQueue:
    """Run queue held in process memory.

    Same contract as ``RedisRunQueue`` for single-process deployments where
    the API and the workers share one event loop. Not durable.
    """

    def __init__(self):
        self._entries: deque = deque()

    async def enqueue(self, run_id: str) -> None:
        self._entries.append(encode_job(run_id))

    async def dequeue(self) -> Optional[str]:
        if not self._entries:
            return None
        return decode_job(self._entries.popleft())

    async def length(self) -> int:
        return len(self._entries)


def build_run_queue(settings: Settings, redis_client: Optional[aioredis.Redis] = None):
    """Create the queue backend selected by ``RUN_QUEUE_BACKEND``."""
    backend = settings.RUN_QUEUE_BACKEND.lower()
    if backend == "memory":
        logger.warning("Using in-memory run queue; queued runs do not survive a restart")
        return InMemoryRunQueue()
    if backend == "redis":
        client = redis_client or aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisRunQueue(client, key=settings.RUN_QUEUE_KEY)
    raise ValueError(f"Unknown RUN_QUEUE_BACKEND: {settings.RUN_QUEUE_BACKEND}")
