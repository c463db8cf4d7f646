"""
Celery job queue — maps engine hooks to Celery tasks.

    <data_type>_sync   -> tasks.crm_sync.sync_item(data_type, item_id)
    <data_type>_export -> tasks.crm_export.export_page(data_type, offset, run_id)
Version: 1.0.0
"""
import logging
from typing import Any, Dict

from celery import Celery

from crm_sync.core.constants.export import DATA_TYPES, export_hook, sync_hook
from crm_sync.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SYNC_TASK = "tasks.crm_sync.sync_item"
EXPORT_TASK = "tasks.crm_export.export_page"

HOOK_TASKS: Dict[str, str] = {
    **{sync_hook(data_type): SYNC_TASK for data_type in DATA_TYPES},
    **{export_hook(data_type): EXPORT_TASK for data_type in DATA_TYPES},
}


class CeleryJobQueue:
    def __init__(self, app: Celery) -> None:
        self._app = app

    def enqueue(self, hook: str, args: Dict[str, Any], delay_seconds: int = 0) -> None:
        task_name = HOOK_TASKS.get(hook)
        if task_name is None:
            raise ValidationError(f"No task registered for hook '{hook}'")

        options: Dict[str, Any] = {}
        if delay_seconds > 0:
            options["countdown"] = delay_seconds

        result = self._app.send_task(task_name, kwargs=dict(args), **options)
        logger.debug(f"Sent {task_name}[{result.id}] for {hook} args={args} delay={delay_seconds}s")
