"""Flow schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional, Dict, Any


class FlowCreate(BaseModel):
    """Request to create a flow."""

    name: str = Field(min_length=1, description="Flow name")
    nodes: List[Dict[str, Any]] = Field(default=[], description="Ordered node definitions")


class FlowUpdate(BaseModel):
    """Request to replace a flow's node list."""

    nodes: List[Dict[str, Any]] = Field(description="Ordered node definitions")


class FlowResponse(BaseModel):
    """Flow information response."""

    id: str = Field(description="Flow ID")
    name: str = Field(description="Flow name")
    nodes: List[Dict[str, Any]] = Field(description="Ordered node definitions")
    version: int = Field(description="Flow version number")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")

    class Config:
        from_attributes = True
