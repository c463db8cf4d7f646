"""
CRM export tasks — paginated mass export.

Tasks:
- export_page: Uploads one page of a data type and schedules the next one
Version: 1.0.0
"""
import logging
from typing import Optional

import httpx

from crm_sync.celery_app.celery_config import celery_app
from crm_sync.celery_app.tasks.base import BaseTask, raise_for_fatal, run_async
from crm_sync.core.exceptions import ExportFailedError, NonRetryableError, RetryableError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.crm_export.export_page",
    autoretry_for=(RetryableError, ConnectionError, TimeoutError, httpx.ConnectError, httpx.ReadTimeout),
    dont_autoretry_for=(NonRetryableError,),
    retry_backoff=True,
    max_retries=3,
)
def export_page(self, data_type: str, offset: int, run_id: Optional[str] = None):
    """
    Export one page of ``data_type``.

    Args:
        data_type: customer, product or sale
        offset: Combined position of the page within the export
        run_id: Export run that scheduled this page
    """
    from crm_sync.container import get_data_sync

    logger.info(f"Exporting {data_type} page at offset {offset} (run {run_id})")
    data_sync = get_data_sync(data_type)

    try:
        result = run_async(data_sync.run_export_page(offset, run_id))
    except RetryableError as e:
        if self.request.retries >= self.max_retries:
            # Nothing will pick this run up again
            logger.error(f"{data_type} export page at offset {offset} out of retries: {e}")
            data_sync.fail_export(str(e), run_id)
        raise

    return raise_for_fatal(
        result,
        lambda r: ExportFailedError(data_type, r.reason or "unknown"),
    )
