"""Flow model for the flow runner."""

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from db.base import BaseModel


class Flow(BaseModel):
    """Flow model representing an ordered list of node definitions.

    Attributes:
        id: Unique identifier (UUID string)
        name: Flow name
        nodes: JSON list of node definitions, in execution order
        version: Bumped every time the node list is edited
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "flows"

    name: Mapped[str] = mapped_column(nullable=False, default="", index=True)
    nodes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(default=1)
