"""
Lazy DI container — singleton access to clients, stores, and services.

Works in both FastAPI (async) and Celery (sync) contexts.
Import individual getters to avoid circular imports.

CRM_STATE_BACKEND=memory swaps the Redis stores and the Celery queue for
process-local ones (single-process development only).
Version: 1.0.0
"""

from functools import lru_cache

import redis

from crm_sync.core.config import settings
from crm_sync.core.constants.export import DATA_TYPES
from crm_sync.core.exceptions import UnknownDataTypeError
from crm_sync.clients.commerce_client import CommerceClient
from crm_sync.clients.crm_client import CrmClient
from crm_sync.db.notice_store import InMemoryNoticeStore, RedisNoticeStore
from crm_sync.db.pending_jobs import InMemoryPendingJobRegistry, RedisPendingJobRegistry
from crm_sync.db.progress_store import InMemoryProgressStore, RedisProgressStore
from crm_sync.services.batch_exporter import BatchExporter
from crm_sync.services.data_sync import DataSync
from crm_sync.services.dedup_scheduler import DedupScheduler
from crm_sync.services.export_response_handler import ExportResponseHandler
from crm_sync.services.job_queue import InMemoryJobQueue
from crm_sync.services.throttle_controller import ThrottleController
from crm_sync.sources.base import PassthroughFormatter
from crm_sync.sources.commerce import build_collection_source


def _use_memory() -> bool:
    return settings.state_backend == "memory"


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_redis_client():
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


@lru_cache(maxsize=1)
def get_crm_client():
    return CrmClient(settings)


@lru_cache(maxsize=1)
def get_commerce_client():
    return CommerceClient(settings)


# -- Stores ----------------------------------------------------------------

@lru_cache(maxsize=1)
def get_progress_store():
    if _use_memory():
        return InMemoryProgressStore()
    return RedisProgressStore(get_redis_client())


@lru_cache(maxsize=1)
def get_pending_job_registry():
    if _use_memory():
        return InMemoryPendingJobRegistry(ttl=settings.pending_job_ttl)
    return RedisPendingJobRegistry(get_redis_client(), ttl=settings.pending_job_ttl)


@lru_cache(maxsize=1)
def get_notice_store():
    if _use_memory():
        return InMemoryNoticeStore()
    return RedisNoticeStore(get_redis_client())


@lru_cache(maxsize=1)
def get_job_queue():
    if _use_memory():
        return InMemoryJobQueue()
    # Lazy import: circular dependency avoidance (tasks import this module)
    from crm_sync.celery_app.celery_config import celery_app
    from crm_sync.celery_app.job_queue import CeleryJobQueue
    return CeleryJobQueue(celery_app)


# -- Engine services -------------------------------------------------------

@lru_cache(maxsize=1)
def get_scheduler():
    return DedupScheduler(get_job_queue(), get_pending_job_registry())


@lru_cache(maxsize=1)
def get_response_handler():
    return ExportResponseHandler(
        progress_store=get_progress_store(),
        notices=get_notice_store(),
        scheduler=get_scheduler(),
        retry_delay=settings.rate_limit_retry_seconds,
    )


@lru_cache(maxsize=1)
def get_throttle_controller():
    return ThrottleController(settings, get_progress_store())


@lru_cache(maxsize=None)
def get_data_sync(data_type: str) -> DataSync:
    if data_type not in DATA_TYPES:
        raise UnknownDataTypeError(data_type)

    source = build_collection_source(get_commerce_client(), data_type)
    formatter = PassthroughFormatter()
    exporter = BatchExporter(
        data_type,
        source,
        formatter,
        get_crm_client(),
        get_progress_store(),
        page_size=settings.export_page_size,
    )
    return DataSync(
        data_type,
        source=source,
        formatter=formatter,
        exporter=exporter,
        throttle=get_throttle_controller(),
        scheduler=get_scheduler(),
        handler=get_response_handler(),
        notices=get_notice_store(),
        progress_store=get_progress_store(),
    )
