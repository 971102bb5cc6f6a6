"""
Database models.

Importing this package registers every model with Base.metadata, which
Alembic and init_db() rely on.
"""

from studypilot.models.material import (
    MaterialEmbedding,
    MaterialStatus,
    MaterialType,
    StudyMaterial,
)
from studypilot.models.processing import (
    ProcessingTask,
    TaskStatus,
    TaskType,
    can_transition,
)

__all__ = [
    "MaterialEmbedding",
    "MaterialStatus",
    "MaterialType",
    "StudyMaterial",
    "ProcessingTask",
    "TaskStatus",
    "TaskType",
    "can_transition",
]
