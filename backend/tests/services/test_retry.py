"""
Tests for retry_operation.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from studypilot.core.exceptions import NonRetryableError
from studypilot.models.processing import TaskStatus, TaskType
from studypilot.services.processing.retry import retry_operation


@pytest_asyncio.fixture
async def running_task(repository):
    repository.add_material(1)
    tasks = await repository.create_tasks(1)
    task = tasks[TaskType.TEXT_EXTRACTION]
    await repository.update_task(task.id, TaskStatus.PROCESSING)
    repository.updates.clear()
    return task


@pytest.mark.asyncio
class TestRetryOperation:
    async def test_first_attempt_succeeds(self, repository, running_task):
        operation = AsyncMock(return_value="ok")

        result = await retry_operation(operation, running_task.id, "extraction", repository, 3, 0)

        assert result == "ok"
        assert operation.await_count == 1
        assert repository.updates == []

    async def test_recovers_after_two_failures(self, repository, running_task):
        operation = AsyncMock(side_effect=[TimeoutError("t1"), ConnectionError("t2"), "ok"])

        result = await retry_operation(operation, running_task.id, "extraction", repository, 3, 0)

        assert result == "ok"
        assert operation.await_count == 3
        assert [(u["progress"], u["error"]) for u in repository.updates] == [
            (0.0, "t1"),
            (pytest.approx(1 / 3), "t2"),
        ]
        assert all(u["status"] == "processing" for u in repository.updates)

    async def test_raises_last_error_after_max_attempts(self, repository, running_task):
        operation = AsyncMock(side_effect=[RuntimeError("one"), RuntimeError("two"), RuntimeError("three")])

        with pytest.raises(RuntimeError, match="three"):
            await retry_operation(operation, running_task.id, "extraction", repository, 3, 0)

        assert operation.await_count == 3
        assert len(repository.updates) == 2

    async def test_non_retryable_is_not_retried(self, repository, running_task):
        operation = AsyncMock(side_effect=NonRetryableError("bad input"))

        with pytest.raises(NonRetryableError):
            await retry_operation(operation, running_task.id, "extraction", repository, 3, 0)

        assert operation.await_count == 1
        assert repository.updates == []

    async def test_linear_backoff(self, repository, running_task):
        operation = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "ok"])

        with patch("studypilot.services.processing.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await retry_operation(operation, running_task.id, "extraction", repository, 3, 1000)

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    async def test_rejects_zero_retries(self, repository, running_task):
        with pytest.raises(ValueError):
            await retry_operation(AsyncMock(), running_task.id, "extraction", repository, 0, 0)
