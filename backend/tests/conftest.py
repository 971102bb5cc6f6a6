"""
Pytest configuration and fixtures.

Unit tests run against in-memory fakes of every external collaborator
(key-value store, network, remote sync endpoint, scheduler, task store,
content generator, embedder). Tests marked ``integration`` need PostgreSQL
with pgvector and run only with ``--run-integration``.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- pytest-asyncio: https://pytest-asyncio.readthedocs.io/
"""

import asyncio
import json
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio

from studypilot.core.exceptions import (
    InvalidTaskTransitionError,
    MaterialNotFoundError,
    TaskNotFoundError,
)
from studypilot.db.base import utcnow
from studypilot.models.material import MaterialStatus, MaterialType
from studypilot.models.processing import TaskStatus, TaskType, can_transition
from studypilot.schemas.processing import (
    AnalysisResult,
    ProcessingTaskRead,
    StudyMaterialRead,
    TextChunk,
)
from studypilot.schemas.sync import SyncableContent
from studypilot.services.offline.content_store import LocalContentStore
from studypilot.services.processing.pipeline import MaterialProcessingPipeline, PipelineOptions
from studypilot.services.processors.batch import BatchOptions
from studypilot.services.sync.coordinator import SyncCoordinator


FIXED_NOW_MS = 1_700_000_000_000


# ================================
# Fakes: storage and sync
# ================================

class InMemoryKeyValueStorage:
    """KeyValueStorage over a dict."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.writes = 0

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def get_all_keys(self) -> List[str]:
        return list(self.data)

    async def multi_remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class FakeReachabilityOracle:
    def __init__(self, connected: bool = True):
        self.connected = connected
        self.checks = 0

    async def is_connected(self) -> bool:
        self.checks += 1
        return self.connected


class FakeDeltaSource:
    """
    RemoteDeltaSource returning queued responses.

    Set ``error`` to make fetches fail, or ``gate`` to hold a fetch open
    until the test releases it.
    """

    def __init__(self, *responses: SyncableContent):
        self.responses = list(responses)
        self.calls: List[int] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def fetch_since(self, timestamp: int) -> SyncableContent:
        self.calls.append(timestamp)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0] if self.responses else SyncableContent()


class FakeScheduler:
    def __init__(self):
        self.registrations: List[tuple] = []

    def register(self, name: str, interval: timedelta, task_name: str) -> None:
        self.registrations.append((name, interval, task_name))


class InMemorySyncLock:
    """SyncLock shared by coordinators standing in for separate processes."""

    def __init__(self):
        self.held = False
        self.acquisitions = 0

    async def acquire(self) -> bool:
        if self.held:
            return False
        self.held = True
        self.acquisitions += 1
        return True

    async def release(self) -> None:
        self.held = False


# ================================
# Fakes: processing
# ================================

class InMemoryProcessingRepository:
    """
    ProcessingRepository over dicts, enforcing the same status rules as the
    SQL implementation. Every task update is kept in ``updates``.
    """

    def __init__(self):
        self.materials: Dict[int, StudyMaterialRead] = {}
        self.tasks: Dict[int, ProcessingTaskRead] = {}
        self.updates: List[Dict[str, Any]] = []
        self.embeddings: Dict[int, List[TextChunk]] = {}
        self.results: Dict[int, Dict[str, Any]] = {}
        self.unavailable = False
        self._next_task_id = 1

    def add_material(
        self,
        material_id: int = 1,
        material_type: MaterialType = MaterialType.TEXT,
        source_content: Optional[str] = "",
        title: str = "Sample material",
    ) -> StudyMaterialRead:
        material = StudyMaterialRead(
            id=material_id,
            user_id=1,
            title=title,
            material_type=material_type.value,
            source_content=source_content,
            status=MaterialStatus.PROCESSING.value,
        )
        self.materials[material_id] = material
        return material

    async def get_material(self, material_id: int) -> StudyMaterialRead:
        if material_id not in self.materials:
            raise MaterialNotFoundError(material_id)
        return self.materials[material_id]

    async def create_tasks(self, material_id: int) -> Dict[TaskType, ProcessingTaskRead]:
        self.tasks = {
            task_id: task for task_id, task in self.tasks.items()
            if task.material_id != material_id
        }
        created = {}
        for task_type in TaskType:
            now = utcnow()
            task = ProcessingTaskRead(
                id=self._next_task_id,
                material_id=material_id,
                task_type=task_type.value,
                status=TaskStatus.PENDING.value,
                progress=0.0,
                created_at=now,
                updated_at=now,
            )
            self.tasks[task.id] = task
            created[task_type] = task
            self._next_task_id += 1
        return created

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
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Processing task {task_id} not found")
        if not can_transition(task.status, status):
            raise InvalidTaskTransitionError(task_id, task.status, str(status))

        changes: Dict[str, Any] = {"status": TaskStatus(status).value, "updated_at": utcnow()}
        if progress is not None:
            progress = min(max(progress, 0.0), 1.0)
            if task.status == status == TaskStatus.PROCESSING:
                progress = max(progress, task.progress)
            changes["progress"] = progress
        if result is not None:
            changes["result"] = result
        if error is not None:
            changes["error"] = error
        if message is not None:
            changes["message"] = message

        updated = task.model_copy(update=changes)
        self.tasks[task_id] = updated
        self.updates.append({"task_id": task_id, "task_type": task.task_type, **changes})
        return updated

    async def list_tasks(self, material_id: int) -> List[ProcessingTaskRead]:
        if self.unavailable:
            raise ConnectionError("task store unreachable")
        return sorted(
            (task for task in self.tasks.values() if task.material_id == material_id),
            key=lambda task: (task.created_at, task.id),
        )

    async def update_material_status(
        self,
        material_id: int,
        status: MaterialStatus,
        error_message: Optional[str] = None,
    ) -> None:
        material = await self.get_material(material_id)
        self.materials[material_id] = material.model_copy(update={
            "status": MaterialStatus(status).value,
            "error_message": error_message,
        })

    async def save_material_results(
        self,
        material_id: int,
        content: str,
        analysis: AnalysisResult,
        embeddings: List[float],
    ) -> None:
        material = await self.get_material(material_id)
        self.materials[material_id] = material.model_copy(update={
            "status": MaterialStatus.READY.value,
            "content": content,
            "topics": analysis.topics,
            "processed_content": analysis.processed_content(),
            "error_message": None,
        })
        self.results[material_id] = {"embeddings": embeddings}

    async def store_embeddings(self, material_id: int, chunks: Sequence[TextChunk]) -> int:
        self.embeddings[material_id] = list(chunks)
        return len(chunks)

    def task_of(self, task_type: TaskType) -> ProcessingTaskRead:
        return next(task for task in self.tasks.values() if task.task_type == task_type.value)

    def updates_for(self, task_type: TaskType) -> List[Dict[str, Any]]:
        return [u for u in self.updates if u["task_type"] == task_type.value]


SAMPLE_ANALYSIS = {
    "topics": ["Aerodynamics", "Lift"],
    "summary": "How wings generate lift.",
    "key_points": ["Pressure differential", "Angle of attack"],
    "difficulty_level": "beginner",
    "prerequisites": ["Basic physics"],
    "related_topics": ["Drag"],
}


class FakeContentGenerator:
    """
    ContentGenerator with scripted responses.

    ``extract_failures`` / ``analyze_failures`` are raised, in order, before
    the scripted value is returned.
    """

    def __init__(self, extracted_text: str = "Extracted text from the upload", analysis: Any = None):
        self.extracted_text = extracted_text
        self.analysis_response = json.dumps(SAMPLE_ANALYSIS) if analysis is None else analysis
        self.extract_failures: List[Exception] = []
        self.analyze_failures: List[Exception] = []
        self.extract_calls = 0
        self.analyze_calls = 0

    async def extract_text(self, material_type, data: str) -> str:
        self.extract_calls += 1
        if self.extract_failures:
            raise self.extract_failures.pop(0)
        return self.extracted_text

    async def analyze_content(self, content: str) -> str:
        self.analyze_calls += 1
        if self.analyze_failures:
            raise self.analyze_failures.pop(0)
        return self.analysis_response


class FakeEmbedder:
    """Embedder returning a small deterministic vector per text."""

    dimension = 3

    def __init__(self):
        self.calls: List[str] = []
        self.failures: List[Exception] = []

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return [float(len(text)), float(len(text.split())), 1.0]


# ================================
# Fixtures
# ================================

@pytest.fixture
def key_value() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def content_store(key_value) -> LocalContentStore:
    return LocalContentStore(key_value, max_storage_bytes=10_000)


@pytest.fixture
def oracle() -> FakeReachabilityOracle:
    return FakeReachabilityOracle()


@pytest.fixture
def delta_source() -> FakeDeltaSource:
    return FakeDeltaSource()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def sync_lock() -> InMemorySyncLock:
    return InMemorySyncLock()


@pytest.fixture
def coordinator(content_store, oracle, delta_source, scheduler) -> SyncCoordinator:
    return SyncCoordinator(
        store=content_store,
        oracle=oracle,
        delta_source=delta_source,
        scheduler=scheduler,
        sync_interval=timedelta(minutes=15),
        clock=lambda: FIXED_NOW_MS,
    )


@pytest.fixture
def repository() -> InMemoryProcessingRepository:
    return InMemoryProcessingRepository()


@pytest.fixture
def generator() -> FakeContentGenerator:
    return FakeContentGenerator()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def pipeline_options() -> PipelineOptions:
    """Production window sizes with every delay removed."""
    return PipelineOptions(
        batch=BatchOptions(chunk_size=4000, max_concurrent=3, rate_limit_delay_ms=0),
        max_retries=3,
        retry_base_delay_ms=0,
    )


@pytest.fixture
def pipeline(repository, generator, embedder, pipeline_options, content_store) -> MaterialProcessingPipeline:
    return MaterialProcessingPipeline(
        repository=repository,
        generator=generator,
        embedder=embedder,
        options=pipeline_options,
        local_store=content_store,
    )


# ================================
# Database Fixtures (integration)
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    Engine against settings.DATABASE_URL with fresh tables per test.

    NullPool keeps connections out of the event loop between tests.
    """
    from sqlalchemy import text
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import NullPool

    from studypilot.core.config import settings
    from studypilot.db.base import Base
    import studypilot.models  # noqa: F401

    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    from studypilot.db.session import create_session_factory
    return create_session_factory(test_engine)


# ================================
# Pytest Hooks
# ================================

def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require PostgreSQL (with pgvector) and Redis"
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires PostgreSQL, Redis or network)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is given."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
