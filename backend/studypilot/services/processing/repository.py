"""
Processing Repository

Persistence for materials, their per-stage tasks and chunk embeddings.

Every method opens its own short session and commits before returning, so
progress written mid-pipeline is visible to status readers immediately.
Task status changes are checked against ALLOWED_TRANSITIONS here; the
pipeline cannot move a task backwards even by mistake.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studypilot.core.config import settings
from studypilot.core.exceptions import (
    InvalidTaskTransitionError,
    MaterialNotFoundError,
    TaskNotFoundError,
)
from studypilot.db.base import utcnow
from studypilot.models.material import MaterialEmbedding, MaterialStatus, MaterialType, StudyMaterial
from studypilot.models.processing import ProcessingTask, TaskStatus, TaskType, can_transition
from studypilot.schemas.processing import (
    AnalysisResult,
    ProcessingTaskRead,
    StudyMaterialRead,
    TextChunk,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ProcessingRepository(Protocol):
    """Task-record and material store used by the processing pipeline."""

    async def get_material(self, material_id: int) -> StudyMaterialRead:
        ...

    async def create_tasks(self, material_id: int) -> Dict[TaskType, ProcessingTaskRead]:
        """Replace the material's task set with one pending task per stage."""
        ...

    async def update_task(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        progress: Optional[float] = None,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        message: Optional[str] = None,
    ) -> ProcessingTaskRead:
        ...

    async def list_tasks(self, material_id: int) -> List[ProcessingTaskRead]:
        """Tasks for a material ordered by creation."""
        ...

    async def update_material_status(
        self,
        material_id: int,
        status: MaterialStatus,
        error_message: Optional[str] = None,
    ) -> None:
        ...

    async def save_material_results(
        self,
        material_id: int,
        content: str,
        analysis: AnalysisResult,
        embeddings: List[float],
    ) -> None:
        """Store every processing result and mark the material ready."""
        ...

    async def store_embeddings(self, material_id: int, chunks: Sequence[TextChunk]) -> int:
        ...


class SqlProcessingRepository:
    """ProcessingRepository on SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store_batch_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.store_batch_size = store_batch_size or settings.EMBEDDING_STORE_BATCH_SIZE

    # ========================================
    # Materials
    # ========================================

    async def create_material(
        self,
        user_id: int,
        title: str,
        material_type: MaterialType,
        source_content: Optional[str] = None,
    ) -> StudyMaterialRead:
        async with self.session_factory() as session:
            material = StudyMaterial(
                user_id=user_id,
                title=title,
                material_type=MaterialType(material_type).value,
                source_content=source_content,
                status=MaterialStatus.PROCESSING.value,
            )
            session.add(material)
            await session.commit()
            return StudyMaterialRead.model_validate(material)

    async def get_material(self, material_id: int) -> StudyMaterialRead:
        async with self.session_factory() as session:
            material = await session.get(StudyMaterial, material_id)
            if material is None:
                raise MaterialNotFoundError(material_id)
            return StudyMaterialRead.model_validate(material)

    async def update_material_status(
        self,
        material_id: int,
        status: MaterialStatus,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as session:
            material = await session.get(StudyMaterial, material_id)
            if material is None:
                raise MaterialNotFoundError(material_id)

            material.status = MaterialStatus(status).value
            material.error_message = error_message
            if status != MaterialStatus.PROCESSING:
                material.last_processed_at = utcnow()
            await session.commit()

    async def save_material_results(
        self,
        material_id: int,
        content: str,
        analysis: AnalysisResult,
        embeddings: List[float],
    ) -> None:
        async with self.session_factory() as session:
            material = await session.get(StudyMaterial, material_id)
            if material is None:
                raise MaterialNotFoundError(material_id)

            material.content = content
            material.topics = analysis.topics
            material.processed_content = analysis.processed_content()
            material.embeddings = embeddings
            material.status = MaterialStatus.READY.value
            material.error_message = None
            material.last_processed_at = utcnow()
            await session.commit()

        logger.info(f"Material {material_id} marked ready")

    async def store_embeddings(self, material_id: int, chunks: Sequence[TextChunk]) -> int:
        """
        Replace the material's chunk rows.

        Rows are inserted store_batch_size at a time inside one transaction.

        Returns:
            Number of rows written
        """
        rows = [
            {
                "material_id": material_id,
                "chunk_index": index,
                "chunk_text": chunk.text,
                "embedding": chunk.embedding,
            }
            for index, chunk in enumerate(chunks)
        ]

        async with self.session_factory() as session:
            await session.execute(
                delete(MaterialEmbedding).where(MaterialEmbedding.material_id == material_id)
            )
            for start in range(0, len(rows), self.store_batch_size):
                batch = rows[start:start + self.store_batch_size]
                await session.execute(insert(MaterialEmbedding), batch)
            await session.commit()

        logger.info(f"Stored {len(rows)} embeddings for material {material_id}")
        return len(rows)

    # ========================================
    # Tasks
    # ========================================

    async def create_tasks(self, material_id: int) -> Dict[TaskType, ProcessingTaskRead]:
        async with self.session_factory() as session:
            await session.execute(
                delete(ProcessingTask).where(ProcessingTask.material_id == material_id)
            )
            tasks = []
            for task_type in TaskType:
                task = ProcessingTask(
                    material_id=material_id,
                    task_type=task_type.value,
                    status=TaskStatus.PENDING.value,
                    progress=0.0,
                )
                session.add(task)
                # Flush one at a time so created_at follows stage order
                await session.flush()
                tasks.append(task)
            await session.commit()

            return {
                TaskType(task.task_type): ProcessingTaskRead.model_validate(task)
                for task in tasks
            }

    async def update_task(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        progress: Optional[float] = None,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        message: Optional[str] = None,
    ) -> ProcessingTaskRead:
        """
        Move a task to ``status`` and record the given fields.

        Progress is clamped to [0, 1] and never moves backwards while the
        task stays in processing.

        Raises:
            TaskNotFoundError: if the task does not exist
            InvalidTaskTransitionError: if the move is not allowed
        """
        async with self.session_factory() as session:
            stmt = select(ProcessingTask).where(ProcessingTask.id == task_id).with_for_update()
            task = (await session.execute(stmt)).scalar_one_or_none()
            if task is None:
                raise TaskNotFoundError(f"Processing task {task_id} not found")

            if not can_transition(task.status, status):
                raise InvalidTaskTransitionError(task_id, str(task.status), str(status))

            stays_processing = task.status == status == TaskStatus.PROCESSING
            task.status = TaskStatus(status).value
            if progress is not None:
                progress = min(max(progress, 0.0), 1.0)
                task.progress = max(progress, task.progress) if stays_processing else progress
            if result is not None:
                task.result = result
            if error is not None:
                task.error = error
            if message is not None:
                task.message = message[:500]
            await session.commit()

            return ProcessingTaskRead.model_validate(task)

    async def list_tasks(self, material_id: int) -> List[ProcessingTaskRead]:
        async with self.session_factory() as session:
            stmt = (
                select(ProcessingTask)
                .where(ProcessingTask.material_id == material_id)
                .order_by(ProcessingTask.created_at, ProcessingTask.id)
            )
            tasks = (await session.execute(stmt)).scalars().all()
            return [ProcessingTaskRead.model_validate(task) for task in tasks]
