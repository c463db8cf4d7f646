"""
Celery configuration — broker, queues, task routes.

=============================================================================
RUNNING WORKERS
=============================================================================

    celery -A crm_sync.celery_app worker -Q crm_sync,crm_export -l info -n crm@%h

Worker concurrency follows CRM_CONCURRENT_BATCHES, the same number the
single-item throttle divides the request budget by. Running extra workers
by hand is covered by the throttle's spare batch; more than that will hit
429 responses and be rescheduled.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    CELERY_BROKER_URL / CELERY_RESULT_BACKEND: default REDIS_URL
    CRM_CONCURRENT_BATCHES: worker concurrency (default: 1)
    CRM_REQUESTS_PER_MINUTE: CRM request budget (default: 180)
Version: 1.0.0
"""
import logging
import platform

from celery import Celery
from kombu import Queue

from crm_sync.core.config import settings

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == "Windows"

SYNC_QUEUE = "crm_sync"
EXPORT_QUEUE = "crm_export"

celery_app = Celery(
    "crm_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "crm_sync.celery_app.tasks.sync",
        "crm_sync.celery_app.tasks.export",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.concurrent_batches,

    # Single-item syncs and export pages on separate queues so a long
    # export does not starve item updates
    task_queues=(
        Queue(SYNC_QUEUE),
        Queue(EXPORT_QUEUE),
    ),
    task_default_queue=SYNC_QUEUE,
    task_routes={
        "tasks.crm_sync.*": {"queue": SYNC_QUEUE},
        "tasks.crm_export.*": {"queue": EXPORT_QUEUE},
    },

    # Result expiration
    result_expires=3600,  # 1 hour

    # Retry settings
    task_default_retry_delay=30,
    task_max_retries=3,

    worker_pool="solo" if IS_WINDOWS else "prefork",

    # Rate-limit retries are scheduled up to a minute ahead
    broker_transport_options={"visibility_timeout": 3600},

    # Custom log format
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] [%(task_name)s] %(message)s",
)
