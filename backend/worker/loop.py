"""Worker loop: drains the run queue and drives runs to a terminal state.

Each ``WorkerLoop`` is one independent consumer. Several can run in the
same process (``WORKER_CONCURRENCY``) or in separate processes; they only
share the run queue and the database.

Per run the loop writes the run row twice: ``queued → running`` before the
first node, and ``running → completed|failed`` with the result map after
the last one. A database session is held only around each of those writes,
never while nodes execute.
"""

import asyncio
import logging
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.constants import RunState
from core.exceptions import NotFoundError, ValidationError
from services.flow_service import FlowService
from services.run_service import RunService
from workflow.engine import ExecutionResult, NodeExecutor
from workflow.queue import RunQueue

logger = logging.getLogger(__name__)


class WorkerLoop:
    """Poll the run queue and execute every run it hands out."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        queue: RunQueue,
        executor: NodeExecutor,
        poll_interval: float = 0.5,
        error_backoff: float = 1.0,
        name: str = "worker",
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.executor = executor
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.name = name
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        """Ask run_forever() to return; wakes an idle wait immediately."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ─── Loop ──────────────────────────────────────────────

    async def run_forever(self) -> None:
        """Poll until stop() is called.

        An exception while handling one job is logged and followed by a
        longer back-off; it never ends the loop. Cancellation is not caught.
        """
        logger.info(f"[{self.name}] started, polling run queue")
        while not self.stopping:
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception(f"[{self.name}] error while processing job")
                await self._wait(self.error_backoff)
                continue
            if not processed:
                await self._wait(self.poll_interval)
        logger.info(f"[{self.name}] stopped")

    async def run_once(self) -> bool:
        """Take one entry off the queue and process it.

        Returns:
            False if the queue was empty, True otherwise
        """
        run_id = await self.queue.dequeue()
        if run_id is None:
            return False
        await self.process_run(run_id)
        return True

    # ─── One run ───────────────────────────────────────────

    async def process_run(self, run_id: str) -> Optional[ExecutionResult]:
        """Execute one run and persist its terminal state.

        Log events emitted meanwhile carry ``worker`` and ``run_id``.

        Returns:
            The execution result, or None if the run was skipped or its flow
            could not be loaded
        """
        with structlog.contextvars.bound_contextvars(worker=self.name, run_id=run_id):
            return await self._process_run(run_id)

    async def _process_run(self, run_id: str) -> Optional[ExecutionResult]:
        async with self.session_factory() as session:
            runs = RunService(session)
            run = await runs.get_by_id(run_id)
            if run is None:
                logger.warning(f"[{self.name}] run {run_id} not found, dropping job")
                return None
            if run.state != RunState.QUEUED.value:
                logger.warning(
                    f"[{self.name}] run {run_id} is {run.state}, not queued; skipping"
                )
                return None

            flow_error = None
            flow = None
            try:
                flow = await FlowService(session).get_flow(run.flow_id)
            except (NotFoundError, ValidationError) as e:
                flow_error = e.message

            await runs.update_run_state(run_id, RunState.RUNNING)
            await session.commit()

        if flow is None:
            logger.error(f"[{self.name}] run {run_id} cannot start: {flow_error}")
            await self._persist(run_id, RunState.FAILED, result={}, error_message=flow_error)
            return None

        if flow.version != run.version:
            logger.warning(
                f"[{self.name}] run {run_id} was triggered at flow version "
                f"{run.version}, executing current version {flow.version}"
            )

        logger.info(f"[{self.name}] run {run_id}: executing {len(flow.nodes)} node(s)")
        outcome = await self.executor.execute(run, flow.nodes)
        await self._persist(run_id, outcome.state, result=outcome.result)
        logger.info(f"[{self.name}] run {run_id}: {outcome.state.value}")
        return outcome

    async def _persist(
        self,
        run_id: str,
        state: RunState,
        result: dict,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as session:
            await RunService(session).update_run_state(
                run_id, state, result=result, error_message=error_message
            )
            await session.commit()
