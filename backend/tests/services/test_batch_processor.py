"""
Tests for BatchProcessor windowing, ordering and progress reporting.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from studypilot.services.processors.batch import BatchOptions, BatchProcessor, progress_message


class ConcurrencyTracker:
    """Chunk processor recording how many calls overlap."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.seen = []

    async def __call__(self, chunk: str) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.seen.append(chunk)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return chunk.upper()


@pytest.fixture
def options() -> BatchOptions:
    return BatchOptions(chunk_size=10, max_concurrent=3, rate_limit_delay_ms=0)


@pytest.mark.asyncio
class TestProcessBatches:
    async def test_windows_and_progress(self, options):
        tracker = ConcurrencyTracker()
        progress = AsyncMock()
        chunks = [f"c{i}" for i in range(7)]

        results = await BatchProcessor().process_batches(1, chunks, tracker, options, on_progress=progress)

        assert results == [c.upper() for c in chunks]
        assert tracker.peak <= 3
        assert [call.args for call in progress.await_args_list] == [
            (3, 7, "Processing chunk 3 of 7"),
            (6, 7, "Processing chunk 6 of 7"),
            (7, 7, "Processing chunk 7 of 7"),
        ]

    async def test_order_preserved_when_chunks_finish_out_of_order(self, options):
        delays = {"a": 0.03, "b": 0.0, "c": 0.01}

        async def slow_upper(chunk: str) -> str:
            await asyncio.sleep(delays[chunk])
            return chunk.upper()

        results = await BatchProcessor().process_batches(1, ["a", "b", "c"], slow_upper, options)

        assert results == ["A", "B", "C"]

    async def test_no_chunks(self, options):
        processor = AsyncMock()
        progress = AsyncMock()

        assert await BatchProcessor().process_batches(1, [], processor, options, progress) == []
        processor.assert_not_awaited()
        progress.assert_not_awaited()

    async def test_rate_limit_sleep_between_windows_only(self):
        options = BatchOptions(chunk_size=10, max_concurrent=3, rate_limit_delay_ms=1000)
        processor = AsyncMock(side_effect=lambda chunk: chunk)

        with patch("studypilot.services.processors.batch.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await BatchProcessor().process_batches(1, list("abcdefg"), processor, options)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    async def test_processor_error_propagates(self, options):
        async def fail_on_b(chunk: str) -> str:
            if chunk == "b":
                raise RuntimeError("embedding failed")
            return chunk

        progress = AsyncMock()
        with pytest.raises(RuntimeError, match="embedding failed"):
            await BatchProcessor().process_batches(1, list("abcd"), fail_on_b, options, progress)
        progress.assert_not_awaited()


class TestBatchOptions:
    @pytest.mark.parametrize(
        "kwargs",
        [{"chunk_size": 0}, {"max_concurrent": 0}, {"rate_limit_delay_ms": -1}],
    )
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            BatchOptions(**kwargs)

    def test_from_settings(self):
        options = BatchOptions.from_settings()
        assert options.chunk_size == 4000
        assert options.max_concurrent == 3

    def test_progress_message(self):
        assert progress_message(2, 3) == "Processing chunk 2 of 3"
