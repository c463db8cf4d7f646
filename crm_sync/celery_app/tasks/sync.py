"""
CRM sync tasks — single-item uploads.

Tasks:
- sync_item: Uploads one customer/product/sale, throttled to the CRM budget
Version: 1.0.0
"""
import logging

import httpx

from crm_sync.celery_app.celery_config import celery_app
from crm_sync.celery_app.tasks.base import BaseTask, raise_for_fatal, run_async
from crm_sync.core.exceptions import NonRetryableError, RetryableError, UnexpectedResponseError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.crm_sync.sync_item",
    autoretry_for=(RetryableError, ConnectionError, TimeoutError, httpx.ConnectError, httpx.ReadTimeout),
    dont_autoretry_for=(NonRetryableError,),
    retry_backoff=True,
    max_retries=3,
)
def sync_item(self, data_type: str, item_id: str):
    """
    Upload a single item to the CRM.

    Args:
        data_type: customer, product or sale
        item_id: Commerce id of the item
    """
    # Lazy import: container pulls in the Celery job queue adapter
    from crm_sync.container import get_data_sync

    logger.info(f"Syncing {data_type} #{item_id}")
    data_sync = get_data_sync(data_type)

    result = run_async(data_sync.run_single_sync(item_id))
    return raise_for_fatal(
        result,
        lambda r: UnexpectedResponseError(r.detail.get("code"), item_id=item_id),
    )
