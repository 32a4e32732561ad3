"""Run schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional


class TriggerResponse(BaseModel):
    """Response to a trigger request."""

    runId: str = Field(description="ID of the queued run")


class RunResponse(BaseModel):
    """Run state response."""

    id: str = Field(description="Run ID")
    flow_id: str = Field(description="Flow ID")
    version: int = Field(description="Flow version at trigger time")
    state: str = Field(description="Run state (queued, running, completed, failed)")
    payload: Any = Field(default=None, description="Trigger payload")
    result: Optional[Dict[str, Any]] = Field(default=None, description="Outcome per node id")
    error_message: Optional[str] = Field(default=None, description="Why the run failed before executing nodes")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")

    class Config:
        from_attributes = True
