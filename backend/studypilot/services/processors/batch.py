"""
Batch Processor

Runs an async per-chunk processor over a material's text in bounded,
rate-limited windows:

    chunks:   c0 c1 c2 | c3 c4 c5 | c6
    windows:  [gather] -> sleep -> [gather] -> sleep -> [gather]

At most max_concurrent chunks are in flight at once. Each window is awaited
as a whole, then on_progress is awaited with the running count. Results
come back in original chunk order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from studypilot.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int, str], Awaitable[None]]


@dataclass(frozen=True)
class BatchOptions:
    """Windowing and rate-limit settings for one batch run."""

    chunk_size: int = 4000
    max_concurrent: int = 3
    rate_limit_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.rate_limit_delay_ms < 0:
            raise ValueError("rate_limit_delay_ms must not be negative")

    @classmethod
    def from_settings(cls) -> "BatchOptions":
        return cls(
            chunk_size=settings.CHUNK_SIZE_CHARS,
            max_concurrent=settings.MAX_CONCURRENT_CHUNKS,
            rate_limit_delay_ms=settings.RATE_LIMIT_DELAY_MS,
        )


def progress_message(processed: int, total: int) -> str:
    return f"Processing chunk {processed} of {total}"


class BatchProcessor:
    """Windowed, rate-limited fan-out of a chunk processor."""

    async def process_batches(
        self,
        material_id: int,
        content: Iterable[str],
        processor: Callable[[str], Awaitable[T]],
        options: Optional[BatchOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[T]:
        """
        Process every chunk of ``content``.

        Args:
            material_id: Material being processed (for logging)
            content: Chunk sequence, e.g. TextChunks; read once up front
            processor: Async function applied to each chunk
            options: Window size and delay (default from settings)
            on_progress: Awaited after each window with
                (processed, total, "Processing chunk X of Y")

        Returns:
            Per-chunk results in chunk order. The first processor exception
            propagates once its window has settled.
        """
        options = options or BatchOptions.from_settings()
        chunks = list(content)
        total = len(chunks)
        if total == 0:
            logger.info(f"Material {material_id}: no chunks to process")
            return []

        window_count = -(-total // options.max_concurrent)
        logger.info(
            f"Material {material_id}: processing {total} chunks in {window_count} windows "
            f"(max_concurrent={options.max_concurrent})"
        )

        results: List[T] = []
        for start in range(0, total, options.max_concurrent):
            if start > 0 and options.rate_limit_delay_ms > 0:
                await asyncio.sleep(options.rate_limit_delay_ms / 1000)

            window = chunks[start:start + options.max_concurrent]
            results.extend(await asyncio.gather(*(processor(chunk) for chunk in window)))

            processed = start + len(window)
            if on_progress is not None:
                await on_progress(processed, total, progress_message(processed, total))

        return results
