"""
Service container.

All long-lived services are built here once per process and passed down
explicitly instead of living in module-level singletons:

- FastAPI: built in the lifespan handler, stored on app.state.container
- Celery: the embedding model is loaded once per worker process; the rest
  is assembled per task inside the task's event loop (task_container)
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from studypilot.core.config import settings
from studypilot.core.logging import get_logger
from studypilot.db.redis import close_redis, create_redis
from studypilot.db.session import create_session_factory, create_task_engine
from studypilot.services.ai.content_generator import AnthropicContentGenerator, ContentGenerator
from studypilot.services.offline.content_store import LocalContentStore
from studypilot.services.processing.pipeline import MaterialProcessingPipeline, PipelineOptions
from studypilot.services.processing.repository import ProcessingRepository, SqlProcessingRepository
from studypilot.services.storage.key_value import KeyValueStorage, RedisKeyValueStorage
from studypilot.services.sync.coordinator import SyncCoordinator
from studypilot.services.sync.lock import RedisSyncLock, SyncLock
from studypilot.services.sync.network import HttpReachabilityOracle, ReachabilityOracle
from studypilot.services.sync.remote import HttpDeltaSource, RemoteDeltaSource
from studypilot.services.sync.scheduler import BackgroundScheduler

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routes and tasks need, wired together."""

    key_value: KeyValueStorage
    content_store: LocalContentStore
    sync_coordinator: SyncCoordinator
    repository: ProcessingRepository
    pipeline: MaterialProcessingPipeline
    redis: Optional[Redis] = None
    engine: Optional[AsyncEngine] = None

    async def aclose(self) -> None:
        """Release the connections this container owns."""
        await close_redis(self.redis)
        if self.engine is not None:
            await self.engine.dispose()


def build_container(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    redis: Optional[Redis] = None,
    key_value: Optional[KeyValueStorage] = None,
    embedder=None,
    generator: Optional[ContentGenerator] = None,
    scheduler: Optional[BackgroundScheduler] = None,
    oracle: Optional[ReachabilityOracle] = None,
    delta_source: Optional[RemoteDeltaSource] = None,
    sync_lock: Optional[SyncLock] = None,
    engine: Optional[AsyncEngine] = None,
) -> ServiceContainer:
    """
    Wire the sync and processing services.

    Anything not passed in gets its production implementation. Without a
    Redis client there is no shared sync lock, and only the coordinator's
    in-process guard applies.
    """
    if key_value is None:
        if redis is None:
            raise ValueError("either redis or key_value is required")
        key_value = RedisKeyValueStorage(redis, namespace=settings.LOCAL_STORE_NAMESPACE)

    if embedder is None:
        from studypilot.services.processors.embedder import EmbeddingService
        embedder = EmbeddingService()

    if scheduler is None:
        from studypilot.services.sync.scheduler import CeleryBeatScheduler
        from studypilot.workers.celery_app import celery_app
        scheduler = CeleryBeatScheduler(celery_app, queue="sync")

    if sync_lock is None and redis is not None:
        sync_lock = RedisSyncLock(redis)

    content_store = LocalContentStore(key_value)

    sync_coordinator = SyncCoordinator(
        store=content_store,
        oracle=oracle or HttpReachabilityOracle(),
        delta_source=delta_source or HttpDeltaSource(),
        scheduler=scheduler,
        lock=sync_lock,
    )

    repository = SqlProcessingRepository(session_factory)
    pipeline = MaterialProcessingPipeline(
        repository=repository,
        generator=generator or AnthropicContentGenerator(),
        embedder=embedder,
        options=PipelineOptions.from_settings(),
        local_store=content_store,
    )

    logger.info("service_container_built", namespace=settings.LOCAL_STORE_NAMESPACE)

    return ServiceContainer(
        key_value=key_value,
        content_store=content_store,
        sync_coordinator=sync_coordinator,
        repository=repository,
        pipeline=pipeline,
        redis=redis,
        engine=engine,
    )


@asynccontextmanager
async def task_container(embedder=None) -> AsyncIterator[ServiceContainer]:
    """
    Container for one Celery task run.

    Database and Redis connections are created in, and closed before
    leaving, the task's own event loop.
    """
    engine = create_task_engine()
    redis = create_redis()
    container = build_container(
        session_factory=create_session_factory(engine),
        redis=redis,
        embedder=embedder,
        engine=engine,
    )
    try:
        yield container
    finally:
        await container.aclose()
