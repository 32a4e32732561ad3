"""Run model for the flow runner."""

from typing import Optional

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import RunState
from db.base import BaseModel


class Run(BaseModel):
    """Run model representing one triggered execution of a flow.

    ``flow_id`` is not a foreign key; a run row outlives its flow.

    Attributes:
        id: Unique identifier (UUID string)
        flow_id: Flow this run executes
        version: Flow version at trigger time
        state: Lifecycle state (queued, running, completed, failed)
        payload: Caller-supplied input passed to every node
        result: Mapping of node id to that node's outcome record
        error_message: Set when the run failed before any node could run
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "runs"

    flow_id: Mapped[str] = mapped_column(nullable=False, index=True)
    version: Mapped[int] = mapped_column(default=1)
    state: Mapped[str] = mapped_column(default=RunState.QUEUED.value, index=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(nullable=True)
