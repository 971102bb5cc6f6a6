"""
Retry with linear backoff for pipeline stages.

    attempt 1 fails -> task: processing, progress 0/3, error -> sleep 1 * base
    attempt 2 fails -> task: processing, progress 1/3, error -> sleep 2 * base
    attempt 3 fails -> last error raised

NonRetryableError is raised on the first occurrence. The repository keeps the
higher of the stored and the retry progress while a task stays in processing.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from studypilot.core.config import settings
from studypilot.core.exceptions import NonRetryableError
from studypilot.models.processing import TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    task_id: int,
    description: str,
    repository,
    max_retries: int | None = None,
    base_delay_ms: int | None = None,
) -> T:
    """
    Await ``operation()`` up to ``max_retries`` times.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        task_id: Task that records retry progress
        description: Human readable name for logs, e.g. "text extraction"
        repository: ProcessingRepository used to record failed attempts
        max_retries: Attempt limit (default settings.PROCESSING_MAX_RETRIES)
        base_delay_ms: Delay unit; attempt n waits n * base_delay_ms

    Returns:
        The first successful result

    Raises:
        NonRetryableError: immediately, without further attempts
        Exception: the last error once all attempts have failed
    """
    max_retries = max_retries if max_retries is not None else settings.PROCESSING_MAX_RETRIES
    base_delay_ms = (
        base_delay_ms if base_delay_ms is not None else settings.PROCESSING_RETRY_BASE_DELAY_MS
    )
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except NonRetryableError:
            raise
        except Exception as e:
            last_error = e
            logger.warning(f"Attempt {attempt}/{max_retries} failed for {description}: {e}")

            if attempt < max_retries:
                await repository.update_task(
                    task_id,
                    TaskStatus.PROCESSING,
                    progress=(attempt - 1) / max_retries,
                    error=str(e),
                )
                await asyncio.sleep(base_delay_ms * attempt / 1000)

    raise last_error
