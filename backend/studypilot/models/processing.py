"""
Processing Task Models

Each material entering the pipeline gets exactly one task per stage:

    TEXT_EXTRACTION → CONTENT_ANALYSIS → EMBEDDING_GENERATION

Task Status Flow:
-----------------
PENDING → PROCESSING → COMPLETED (success path)
              ↓
            ERROR (terminal; re-processing creates a fresh task set)

PROCESSING → PROCESSING is allowed so that progress and retry messages
can be recorded while a stage runs. Nothing leaves a terminal state.
"""

import enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studypilot.db.base import BaseModel, String20, String50, String500

if TYPE_CHECKING:
    from studypilot.models.material import StudyMaterial


class TaskType(str, enum.Enum):
    """Pipeline stages, in execution order."""

    TEXT_EXTRACTION = "text_extraction"
    CONTENT_ANALYSIS = "content_analysis"
    EMBEDDING_GENERATION = "embedding_generation"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Human readable stage name, e.g. 'Text extraction'."""
        return self.value.replace("_", " ").capitalize()


class TaskStatus(str, enum.Enum):
    """Per-stage task status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


# Allowed status moves; anything else is a regression.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({
        TaskStatus.PROCESSING,
        TaskStatus.COMPLETED,
        TaskStatus.ERROR,
    }),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ERROR: frozenset(),
}


def can_transition(current: TaskStatus | str, requested: TaskStatus | str) -> bool:
    """Return True if a task may move from ``current`` to ``requested``."""
    return TaskStatus(requested) in ALLOWED_TRANSITIONS[TaskStatus(current)]


class ProcessingTask(BaseModel):
    """
    Durable record of one pipeline stage for one material.

    Table: processing_tasks
    -----------------------
    Unique on (material_id, task_type). progress is a fraction in [0, 1];
    message carries the latest human readable progress line
    (e.g. "Processing chunk 2 of 3").
    """

    __tablename__ = "processing_tasks"
    __table_args__ = (
        UniqueConstraint("material_id", "task_type", name="uq_processing_task_material_type"),
    )

    material_id: Mapped[int] = mapped_column(
        ForeignKey("study_materials.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Foreign key to study_materials table"
    )

    task_type: Mapped[TaskType] = mapped_column(
        String50,
        nullable=False,
        comment="text_extraction, content_analysis or embedding_generation"
    )

    status: Mapped[TaskStatus] = mapped_column(
        String20,
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
        comment="pending, processing, completed or error"
    )

    progress: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Fraction complete in [0, 1]"
    )

    result: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=True,
        comment="Stage output once completed"
    )

    error: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Last error message (retry attempt or terminal failure)"
    )

    message: Mapped[Optional[str]] = mapped_column(
        String500,
        nullable=True,
        comment="Latest progress message"
    )

    material: Mapped["StudyMaterial"] = relationship(
        "StudyMaterial",
        back_populates="tasks",
    )

    def __repr__(self) -> str:
        return f"ProcessingTask(id={self.id}, type={self.task_type}, status={self.status})"
