"""
Celery tasks for background processing.
"""

import asyncio
import concurrent.futures


def run_async(coro):
    """
    Run a coroutine to completion from synchronous Celery code.

    - Celery worker (no running loop): asyncio.run()
    - Tests (a loop is already running): asyncio.run() in a worker thread
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()


__all__ = ["run_async"]
