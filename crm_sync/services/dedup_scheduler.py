"""
Dedup scheduler — at most one pending job per (hook, item).

Single-item sync:
    N calls for the same item before its job runs enqueue exactly one job.
    force=True always enqueues (used to retry after a rate-limit response).

Export continuation:
    One pending export job per data type. Launching a new export while a
    page job is queued is refused; continuations replace the marker.
Version: 1.0.0
"""
import logging
from typing import Any, Dict

from crm_sync.core.constants.export import export_hook, sync_hook
from crm_sync.db.pending_jobs import PendingJobRegistry
from crm_sync.services.job_queue import JobQueue

logger = logging.getLogger(__name__)


class DedupScheduler:
    def __init__(self, job_queue: JobQueue, registry: PendingJobRegistry) -> None:
        self._queue = job_queue
        self._registry = registry

    # ------------------------------------------------------------------
    # Single-item sync
    # ------------------------------------------------------------------

    @staticmethod
    def _single_args(data_type: str, item_id) -> Dict[str, Any]:
        return {"data_type": data_type, "item_id": str(item_id)}

    def schedule_single_update(self, data_type: str, item_id, force: bool = False) -> bool:
        """
        Queue a sync job for one item unless an identical one is already pending.

        Returns:
            True if a job was enqueued
        """
        hook = sync_hook(data_type)
        args = self._single_args(data_type, item_id)

        if not self._registry.claim(hook, args, force=force):
            logger.debug(f"#{item_id} {data_type} sync already pending, skipping")
            return False

        self._queue.enqueue(hook, args)
        logger.info(f"#{item_id} NEW/UPDATE {data_type.upper()}, SYNC SCHEDULED")
        return True

    def begin_single_update(self, data_type: str, item_id) -> None:
        """Called when the sync job starts: later changes need a new job."""
        self._registry.release(sync_hook(data_type), self._single_args(data_type, item_id))

    # ------------------------------------------------------------------
    # Export pages
    # ------------------------------------------------------------------

    @staticmethod
    def _export_marker(data_type: str) -> Dict[str, Any]:
        return {"data_type": data_type}

    def schedule_export_page(self, data_type: str, offset: int, run_id: str, delay_seconds: int = 0) -> None:
        hook = export_hook(data_type)
        self._registry.claim(hook, self._export_marker(data_type), force=True)
        self._queue.enqueue(
            hook,
            {"data_type": data_type, "offset": offset, "run_id": run_id},
            delay_seconds=delay_seconds,
        )
        logger.info(
            f"{data_type} export page scheduled: offset={offset}, run={run_id}, delay={delay_seconds}s"
        )

    def is_export_pending(self, data_type: str) -> bool:
        return self._registry.is_pending(export_hook(data_type), self._export_marker(data_type))

    def begin_export_page(self, data_type: str) -> None:
        self._registry.release(export_hook(data_type), self._export_marker(data_type))
