"""
Material Processing Pipeline

Runs an uploaded study material through three stages, each tracked by a
persisted ProcessingTask:

    TEXT_EXTRACTION → CONTENT_ANALYSIS → EMBEDDING_GENERATION → material READY

Stage Flow:
-----------
1. Task set replaced (one pending task per stage), material set PROCESSING
2. Each stage: task PROCESSING → work (with retry) → task COMPLETED
3. A failing stage marks its task ERROR, later stages never start, and the
   material is set ERROR with the exception message
4. On success every result is written to the material in one update

External calls (extraction, the analysis request, each chunk embedding) go
through retry_operation. Analysis parse failures are never retried.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from studypilot.core.config import settings
from studypilot.core.exceptions import (
    AnalysisParseError,
    ExtractionError,
    TaskNotFoundError,
)
from studypilot.models.material import MaterialStatus, MaterialType
from studypilot.models.processing import TaskStatus, TaskType
from studypilot.schemas.processing import (
    AnalysisResult,
    EmbeddingResult,
    ExtractionResult,
    ProcessingStatusResponse,
    ProcessingTaskRead,
    StudyMaterialRead,
    TextChunk,
)
from studypilot.services.ai.content_generator import ContentGenerator
from studypilot.services.offline.content_store import LocalContentStore
from studypilot.services.processing.repository import ProcessingRepository
from studypilot.services.processing.retry import retry_operation
from studypilot.services.processors.batch import BatchOptions, BatchProcessor
from studypilot.services.processors.chunker import TextChunks

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)

# Errors meaning the task store itself could not be reached
STORE_UNAVAILABLE_ERRORS = (SQLAlchemyError, OSError)


@dataclass(frozen=True)
class PipelineOptions:
    """Batching and retry settings for one pipeline instance."""

    batch: BatchOptions = field(default_factory=BatchOptions)
    max_retries: int = 3
    retry_base_delay_ms: int = 1000

    @classmethod
    def from_settings(cls) -> "PipelineOptions":
        return cls(
            batch=BatchOptions.from_settings(),
            max_retries=settings.PROCESSING_MAX_RETRIES,
            retry_base_delay_ms=settings.PROCESSING_RETRY_BASE_DELAY_MS,
        )


def parse_analysis(raw: str) -> AnalysisResult:
    """
    Parse the content analysis response.

    The response must be a JSON object, optionally wrapped in a Markdown
    code fence.

    Raises:
        AnalysisParseError: on malformed JSON or missing/invalid fields
    """
    text = raw.strip()
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(str(e)) from e

    if not isinstance(data, dict):
        raise AnalysisParseError(f"expected a JSON object, got {type(data).__name__}")

    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise AnalysisParseError(str(e)) from e


class MaterialProcessingPipeline:
    """
    Drives materials through extraction, analysis and embedding.

    Usage:
    ------
    pipeline = MaterialProcessingPipeline(repository, generator, embedder)
    status = await pipeline.process_new_material(material_id)
    tasks = await pipeline.get_processing_status(material_id)
    """

    def __init__(
        self,
        repository: ProcessingRepository,
        generator: ContentGenerator,
        embedder,
        options: Optional[PipelineOptions] = None,
        local_store: Optional[LocalContentStore] = None,
        batch_processor: Optional[BatchProcessor] = None,
    ):
        self.repository = repository
        self.generator = generator
        self.embedder = embedder
        self.options = options or PipelineOptions.from_settings()
        self.local_store = local_store
        self.batch_processor = batch_processor or BatchProcessor()

    # ========================================
    # Entry point
    # ========================================

    async def process_new_material(self, material: StudyMaterialRead | int) -> MaterialStatus:
        """
        Process a material end to end.

        Stage failures are recorded on the task and the material rather than
        raised; the returned status tells the caller how it went.

        Raises:
            MaterialNotFoundError: if the material does not exist
        """
        if isinstance(material, int):
            material = await self.repository.get_material(material)

        logger.info(f"Processing material {material.id} ({material.material_type})")

        tasks = await self.repository.create_tasks(material.id)
        await self.repository.update_material_status(material.id, MaterialStatus.PROCESSING)

        try:
            content = await self._run_stage(
                self._task(tasks, TaskType.TEXT_EXTRACTION),
                lambda task: self._extract(material, task),
                lambda extraction: {"content_length": len(extraction.content)},
            )
            analysis = await self._run_stage(
                self._task(tasks, TaskType.CONTENT_ANALYSIS),
                lambda task: self._analyze(content.content, task),
                lambda result: result.model_dump(),
            )
            embedding = await self._run_stage(
                self._task(tasks, TaskType.EMBEDDING_GENERATION),
                lambda task: self._embed(material.id, content.content, task),
                lambda result: result.model_dump(exclude={"embeddings"}),
            )
            await self.repository.save_material_results(
                material.id,
                content=content.content,
                analysis=analysis,
                embeddings=embedding.embeddings,
            )
        except Exception as e:
            logger.error(f"Processing failed for material {material.id}: {e}")
            await self.repository.update_material_status(
                material.id, MaterialStatus.ERROR, error_message=str(e)
            )
            return MaterialStatus.ERROR

        logger.info(
            f"Material {material.id} ready: {embedding.chunk_count} chunks, "
            f"{len(analysis.topics)} topics"
        )
        return MaterialStatus.READY

    @staticmethod
    def _task(
        tasks: Dict[TaskType, ProcessingTaskRead], task_type: TaskType
    ) -> ProcessingTaskRead:
        task = tasks.get(task_type)
        if task is None:
            raise TaskNotFoundError(f"{task_type.label} task not found")
        return task

    async def _run_stage(
        self,
        task: ProcessingTaskRead,
        work: Callable[[ProcessingTaskRead], Awaitable[T]],
        summarize: Callable[[T], Dict[str, Any]],
    ) -> T:
        """Run one stage, keeping its task record in step."""
        label = TaskType(task.task_type).label
        await self.repository.update_task(
            task.id, TaskStatus.PROCESSING, progress=0.0, message=f"{label} started"
        )

        try:
            result = await work(task)
        except Exception as e:
            try:
                await self.repository.update_task(task.id, TaskStatus.ERROR, error=str(e))
            except Exception as record_error:
                logger.error(f"Could not mark task {task.id} as failed: {record_error}")
            raise

        await self.repository.update_task(
            task.id,
            TaskStatus.COMPLETED,
            progress=1.0,
            result=summarize(result),
            message=f"{label} completed",
        )
        return result

    async def _retry(self, operation: Callable[[], Awaitable[T]], task_id: int, description: str) -> T:
        return await retry_operation(
            operation,
            task_id,
            description,
            self.repository,
            max_retries=self.options.max_retries,
            base_delay_ms=self.options.retry_base_delay_ms,
        )

    # ========================================
    # Stages
    # ========================================

    async def _extract(self, material: StudyMaterialRead, task: ProcessingTaskRead) -> ExtractionResult:
        material_type = MaterialType(material.material_type)

        if material_type == MaterialType.TEXT:
            text = " ".join((material.source_content or material.content or "").split())
        else:
            if not material.source_content:
                raise ExtractionError(f"Material {material.id} has no uploaded {material_type} data")
            text = await self._retry(
                lambda: self.generator.extract_text(material_type, material.source_content),
                task.id,
                "text extraction",
            )

        try:
            return ExtractionResult(content=text)
        except ValidationError as e:
            raise ExtractionError(f"No text could be extracted from material {material.id}") from e

    async def _analyze(self, content: str, task: ProcessingTaskRead) -> AnalysisResult:
        raw = await self._retry(
            lambda: self.generator.analyze_content(content),
            task.id,
            "content analysis",
        )
        return parse_analysis(raw)

    async def _embed(self, material_id: int, content: str, task: ProcessingTaskRead) -> EmbeddingResult:
        async def embed_chunk(text: str) -> TextChunk:
            vector = await self._retry(
                lambda: self.embedder.embed_text(text),
                task.id,
                "embedding generation",
            )
            return TextChunk(text=text, embedding=vector)

        async def record_progress(processed: int, total: int, message: str) -> None:
            await self.repository.update_task(
                task.id, TaskStatus.PROCESSING, progress=processed / total, message=message
            )

        chunks = await self.batch_processor.process_batches(
            material_id,
            TextChunks(content, self.options.batch.chunk_size),
            embed_chunk,
            self.options.batch,
            record_progress,
        )

        await self.repository.store_embeddings(material_id, chunks)

        return EmbeddingResult(
            chunk_count=len(chunks),
            dimension=len(chunks[0].embedding) if chunks else 0,
            embeddings=[value for chunk in chunks for value in chunk.embedding],
        )

    # ========================================
    # Status
    # ========================================

    async def get_processing_status(self, material_id: int) -> List[ProcessingTaskRead]:
        """
        Tasks for a material in creation order.

        Falls back to the last cached list when the task store is
        unreachable; with nothing cached the store error propagates.
        """
        tasks, _ = await self._load_status(material_id)
        return tasks

    async def get_status_report(self, material_id: int) -> ProcessingStatusResponse:
        tasks, cached = await self._load_status(material_id)
        return ProcessingStatusResponse(material_id=material_id, tasks=tasks, cached=cached)

    async def _load_status(self, material_id: int) -> Tuple[List[ProcessingTaskRead], bool]:
        try:
            tasks = await self.repository.list_tasks(material_id)
        except STORE_UNAVAILABLE_ERRORS as e:
            if self.local_store is None:
                raise
            cached = await self.local_store.load_task_status(material_id)
            if cached is None:
                raise
            logger.warning(f"Task store unavailable ({e}); serving cached status for material {material_id}")
            return cached, True

        if self.local_store is not None:
            try:
                await self.local_store.save_task_status(material_id, tasks)
            except Exception as e:
                logger.warning(f"Could not cache status for material {material_id}: {e}")

        return tasks, False
