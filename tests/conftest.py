"""
Pytest configuration and shared fixtures for CRM Sync tests.

Provides in-memory stores, a recording job queue, a scripted CRM client
and a builder wiring them into DataSync engines.
Version: 1.0.0
"""
import os

os.environ.setdefault("CRM_STATE_BACKEND", "memory")

import pytest
from unittest.mock import AsyncMock, MagicMock

from crm_sync.db.notice_store import InMemoryNoticeStore
from crm_sync.db.pending_jobs import InMemoryPendingJobRegistry
from crm_sync.db.progress_store import InMemoryProgressStore
from crm_sync.schemas.export import ApiResponse
from crm_sync.services.batch_exporter import BatchExporter
from crm_sync.services.data_sync import DataSync
from crm_sync.services.dedup_scheduler import DedupScheduler
from crm_sync.services.export_response_handler import ExportResponseHandler
from crm_sync.services.job_queue import InMemoryJobQueue
from crm_sync.services.throttle_controller import StaticRateConfig, ThrottleController
from crm_sync.sources.base import PassthroughFormatter, StaticSource


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings():
    """Settings object with test defaults (no real credentials)."""
    from crm_sync.core.config import Settings
    return Settings(
        crm_api_url="https://crm.test/api",
        crm_api_token="test-crm-token",
        commerce_api_url="https://shop.test/wp-json/wc/v3",
        commerce_api_key="ck_test",
        commerce_api_secret="cs_test",
        state_backend="memory",
    )


# ---------------------------------------------------------------------------
# In-memory backends
# ---------------------------------------------------------------------------

@pytest.fixture
def progress_store():
    return InMemoryProgressStore()


@pytest.fixture
def registry():
    return InMemoryPendingJobRegistry(ttl=3600)


@pytest.fixture
def notices():
    return InMemoryNoticeStore()


@pytest.fixture
def job_queue():
    return InMemoryJobQueue()


@pytest.fixture
def scheduler(job_queue, registry):
    return DedupScheduler(job_queue, registry)


@pytest.fixture
def handler(progress_store, notices, scheduler):
    return ExportResponseHandler(progress_store, notices, scheduler)


# ---------------------------------------------------------------------------
# CRM client (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_crm_client():
    """CRM client that accepts every upload with 200."""
    client = MagicMock()
    client.upload_data = AsyncMock(return_value=ApiResponse(code=200, body="{}"))
    return client


@pytest.fixture
def mock_sleep():
    return AsyncMock()


# ---------------------------------------------------------------------------
# Engine builder
# ---------------------------------------------------------------------------

@pytest.fixture
def make_data_sync(progress_store, notices, scheduler, handler, mock_crm_client, mock_sleep):
    """Build a DataSync for one data type on the shared in-memory backends."""

    def _make(data_type="product", items=(), sub_items=(), page_size=500, should_sync=None, client=None):
        source = StaticSource(items, sub_items)
        formatter = PassthroughFormatter()
        exporter = BatchExporter(
            data_type,
            source,
            formatter,
            client or mock_crm_client,
            progress_store,
            page_size=page_size,
        )
        throttle = ThrottleController(StaticRateConfig(), progress_store, sleep=mock_sleep)
        return DataSync(
            data_type,
            source=source,
            formatter=formatter,
            exporter=exporter,
            throttle=throttle,
            scheduler=scheduler,
            handler=handler,
            notices=notices,
            progress_store=progress_store,
            should_sync=should_sync,
        )

    return _make
