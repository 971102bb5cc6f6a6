"""
Background scheduling.

Periodic work (the background sync) is registered by name. The Celery
implementation writes a beat_schedule entry; the beat process started
from studypilot.workers.celery_app picks it up.
"""

import logging
from datetime import timedelta
from typing import Optional, Protocol, runtime_checkable

from celery import Celery

logger = logging.getLogger(__name__)


@runtime_checkable
class BackgroundScheduler(Protocol):
    def register(self, name: str, interval: timedelta, task_name: str) -> None:
        """Run ``task_name`` every ``interval`` under the entry ``name``."""
        ...


class CeleryBeatScheduler:
    """BackgroundScheduler that registers Celery beat entries."""

    def __init__(self, app: Celery, queue: Optional[str] = None):
        self.app = app
        self.queue = queue

    def register(self, name: str, interval: timedelta, task_name: str) -> None:
        entry = {
            "task": task_name,
            "schedule": interval,
        }
        if self.queue:
            entry["options"] = {"queue": self.queue}

        schedule = dict(self.app.conf.beat_schedule or {})
        schedule[name] = entry
        self.app.conf.beat_schedule = schedule
        logger.info(f"Registered periodic task '{name}' -> {task_name} every {interval}")
