"""
Tests for service container wiring.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from studypilot.services.container import build_container
from studypilot.services.processing.repository import SqlProcessingRepository
from studypilot.services.sync.lock import RedisSyncLock


@pytest.fixture
def container(key_value, embedder, generator, scheduler, oracle, delta_source):
    return build_container(
        session_factory=MagicMock(),
        key_value=key_value,
        embedder=embedder,
        generator=generator,
        scheduler=scheduler,
        oracle=oracle,
        delta_source=delta_source,
    )


class TestBuildContainer:
    def test_services_share_one_content_store(self, container, key_value):
        assert container.content_store.storage is key_value
        assert container.sync_coordinator.store is container.content_store
        assert container.pipeline.local_store is container.content_store

    def test_pipeline_uses_sql_repository(self, container, embedder, generator):
        assert isinstance(container.repository, SqlProcessingRepository)
        assert container.pipeline.repository is container.repository
        assert container.pipeline.embedder is embedder
        assert container.pipeline.generator is generator

    def test_redis_client_gives_shared_sync_lock(self, embedder, generator, scheduler):
        redis = MagicMock()

        container = build_container(
            session_factory=MagicMock(),
            redis=redis,
            embedder=embedder,
            generator=generator,
            scheduler=scheduler,
        )

        assert isinstance(container.sync_coordinator.lock, RedisSyncLock)
        assert container.sync_coordinator.lock.redis is redis

    def test_no_shared_lock_without_redis(self, container):
        assert container.sync_coordinator.lock is None

    def test_requires_storage(self, embedder, scheduler):
        with pytest.raises(ValueError):
            build_container(session_factory=MagicMock(), embedder=embedder, scheduler=scheduler)


@pytest.mark.asyncio
async def test_aclose_releases_owned_connections(container):
    redis = MagicMock()
    redis.aclose = AsyncMock()
    redis.connection_pool.disconnect = AsyncMock()
    engine = MagicMock()
    engine.dispose = AsyncMock()
    container.redis = redis
    container.engine = engine

    await container.aclose()

    redis.aclose.assert_awaited_once()
    engine.dispose.assert_awaited_once()
