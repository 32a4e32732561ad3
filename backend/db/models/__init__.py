"""Database models for the flow runner.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.flow import Flow
from db.models.run import Run

__all__ = [
    "Flow",
    "Run",
]
