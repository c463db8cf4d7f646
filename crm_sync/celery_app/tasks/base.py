"""
Base task class — lifecycle logging, async helper, job result handling.

Provides:
- Standardized failure/retry/success logging
- run_async for calling the async engine from sync Celery workers
- raise_for_fatal turning FATAL job results into non-retryable errors
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any, Callable, Dict

from celery import Task

from crm_sync.core.exceptions import NonRetryableError
from crm_sync.schemas.export import JobResult

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task with common functionality for all workers."""

    abstract = True

    # NOTE: Do NOT set autoretry_for here. Each task declares which
    # exceptions trigger autoretry.
    retry_backoff = True
    retry_backoff_max = 300  # 5 minutes max backoff
    retry_jitter = True
    max_retries = 3

    track_started = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails after all retries exhausted."""
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """Called when task is being retried."""
        logger.warning(f"Task {self.name}[{task_id}] retrying (attempt {self.request.retries}): {exc}")

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task succeeds."""
        logger.info(f"Task {self.name}[{task_id}] succeeded")


# ============================================
# Async Helper
# ============================================
def run_async(coro):
    """
    Run async function in sync context.

    Each call creates a new event loop to avoid conflicts.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ============================================
# Job results
# ============================================
def raise_for_fatal(result: JobResult, error_factory: Callable[[JobResult], NonRetryableError]) -> Dict[str, Any]:
    """
    Fail the task for FATAL results, otherwise return the result as task output.

    CONTINUE and RETRY_AFTER need nothing from the worker: any follow-up
    job was already enqueued by the engine.
    """
    if result.is_fatal:
        raise error_factory(result)
    return result.model_dump(mode="json")
