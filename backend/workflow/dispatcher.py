"""Dispatcher: turns a trigger request into a queued run.

``submit()`` writes the run row and commits it before pushing the queue
entry, so a worker can never dequeue an id whose row does not exist yet.
The two writes are not atomic: if the push fails the run stays ``queued``
with nothing in the queue pointing at it, and the queue error is raised
to the caller.
"""

import logging
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import QueueUnavailableError
from services.flow_service import FlowService
from services.run_service import RunService
from workflow.queue import RunQueue

logger = logging.getLogger(__name__)


class Dispatcher:
    """Create run records and hand them to the run queue."""

    def __init__(self, session_factory: async_sessionmaker, queue: RunQueue):
        self.session_factory = session_factory
        self.queue = queue

    async def submit(self, flow_id: str, payload: Any = None) -> str:
        """Create a queued run of ``flow_id`` and enqueue it.

        Args:
            flow_id: Flow to run
            payload: Input passed to every node of the run

        Returns:
            The new run id

        Raises:
            NotFoundError: If the flow does not exist (no run is created)
            QueueUnavailableError: If the run was stored but could not be enqueued
        """
        async with self.session_factory() as session:
            flow = await FlowService(session).get_flow(flow_id)
            run_id = str(uuid4())
            await RunService(session).create_run(
                run_id=run_id,
                flow_id=flow.id,
                version=flow.version,
                payload=payload,
            )
            await session.commit()

        try:
            await self.queue.enqueue(run_id)
        except QueueUnavailableError:
            logger.error(f"Run {run_id} stored but not enqueued; it will stay queued")
            raise

        logger.info(f"Run {run_id} queued for flow {flow_id} (version {flow.version})")
        return run_id
