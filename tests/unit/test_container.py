"""
Unit tests for the lazy DI container.

The test suite runs with CRM_STATE_BACKEND=memory, so every getter must
resolve without Redis or a broker.
Version: 1.0.0
"""
import pytest

from crm_sync import container
from crm_sync.core.exceptions import UnknownDataTypeError
from crm_sync.db.progress_store import InMemoryProgressStore
from crm_sync.services.data_sync import DataSync
from crm_sync.services.job_queue import InMemoryJobQueue


pytestmark = pytest.mark.unit


class TestContainer:

    def test_memory_backends_selected(self):
        assert isinstance(container.get_progress_store(), InMemoryProgressStore)
        assert isinstance(container.get_job_queue(), InMemoryJobQueue)

    def test_getters_are_singletons(self):
        assert container.get_scheduler() is container.get_scheduler()
        assert container.get_response_handler() is container.get_response_handler()

    @pytest.mark.parametrize("data_type", ["customer", "product", "sale"])
    def test_data_sync_per_data_type(self, data_type):
        data_sync = container.get_data_sync(data_type)
        assert isinstance(data_sync, DataSync)
        assert data_sync.data_type == data_type
        assert container.get_data_sync(data_type) is data_sync

    def test_page_size_from_settings(self):
        from crm_sync.core.config import settings
        assert container.get_data_sync("product").page_size == settings.export_page_size

    def test_unknown_data_type(self):
        with pytest.raises(UnknownDataTypeError):
            container.get_data_sync("coupon")
