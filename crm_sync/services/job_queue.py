"""
Job queue contract — how the engine hands deferred work to a scheduler.

The Celery adapter lives in crm_sync.celery_app.job_queue; the in-memory
queue here records jobs for local runs and tests.
"""
import logging
import threading
from typing import Any, Dict, List, Protocol

from crm_sync.schemas.export import ExportJob

logger = logging.getLogger(__name__)


class JobQueue(Protocol):

    def enqueue(self, hook: str, args: Dict[str, Any], delay_seconds: int = 0) -> None: ...


class InMemoryJobQueue:
    """Keeps enqueued jobs in a list; nothing executes them automatically."""

    def __init__(self) -> None:
        self.jobs: List[ExportJob] = []
        self._lock = threading.Lock()

    def enqueue(self, hook: str, args: Dict[str, Any], delay_seconds: int = 0) -> None:
        with self._lock:
            self.jobs.append(ExportJob(hook=hook, args=dict(args), delay_seconds=delay_seconds))
        logger.debug(f"Queued {hook} args={args} delay={delay_seconds}s")

    def pop_all(self) -> List[ExportJob]:
        with self._lock:
            jobs, self.jobs = self.jobs, []
        return jobs

    def pending(self, hook: str) -> List[ExportJob]:
        with self._lock:
            return [job for job in self.jobs if job.hook == hook]
