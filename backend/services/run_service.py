"""Run record store: owns every write to the ``runs`` table."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import RUN_STATE_PREDECESSORS, RunState
from core.exceptions import InvalidStateTransitionError, NotFoundError
from db.models.run import Run
from services.base import BaseService

logger = logging.getLogger(__name__)


class RunService(BaseService[Run]):
    """Service for run records and their lifecycle transitions."""

    def __init__(self, db: AsyncSession):
        super().__init__(Run, db)

    async def create_run(
        self,
        run_id: str,
        flow_id: str,
        version: int,
        payload: Any = None,
    ) -> Run:
        """Insert a run in state ``queued``."""
        return await self.create({
            "id": run_id,
            "flow_id": flow_id,
            "version": version,
            "state": RunState.QUEUED.value,
            "payload": payload,
            "result": None,
        })

    async def get_run(self, run_id: str) -> Run:
        """Get a run by id.

        Raises:
            NotFoundError: If no run has this id
        """
        run = await self.get_by_id(run_id)
        if not run:
            raise NotFoundError(f"Run {run_id} not found")
        return run

    async def list_runs(
        self,
        flow_id: Optional[str] = None,
        state: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[Run]:
        return await self.list(
            offset=offset,
            limit=limit,
            filters={"flow_id": flow_id, "state": state},
        )

    async def update_run_state(
        self,
        run_id: str,
        state: RunState,
        result: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Move a run to ``state``.

        The update is a single conditional statement keyed on the run id and
        the allowed predecessor states, so ``completed`` and ``failed`` are
        sinks and a run can never re-enter ``queued`` or ``running``.

        Raises:
            NotFoundError: If no run has this id
            InvalidStateTransitionError: If the run's current state does not
                allow the move
        """
        state = RunState(state)
        allowed = RUN_STATE_PREDECESSORS[state]
        if not allowed:
            raise InvalidStateTransitionError(f"Runs cannot be moved back to {state.value}")

        values: dict[str, Any] = {
            "state": state.value,
            "updated_at": datetime.now(timezone.utc),
        }
        if result is not None:
            values["result"] = result
        if error_message is not None:
            values["error_message"] = error_message

        outcome = await self.db.execute(
            update(Run)
            .where(Run.id == run_id, Run.state.in_([s.value for s in allowed]))
            .values(**values)
        )
        if outcome.rowcount:
            logger.info(f"Run {run_id} → {state.value}")
            return

        current = await self.db.execute(select(Run.state).where(Run.id == run_id))
        current_state = current.scalar_one_or_none()
        if current_state is None:
            raise NotFoundError(f"Run {run_id} not found")
        raise InvalidStateTransitionError(
            f"Run {run_id} cannot move from {current_state} to {state.value}"
        )
