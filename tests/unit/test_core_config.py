"""
Unit tests for Settings and the export constants.

Version: 1.0.0
"""
import pytest

from crm_sync.core.config import Settings, get_settings
from crm_sync.core.constants import ACCEPTED_SINGLE_CODES, DATA_TYPES, UPLOAD_ENDPOINTS
from crm_sync.core.constants.export import export_hook, payload_key, sync_hook


pytestmark = pytest.mark.unit


class TestSettings:

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_explicit_values_override_env_defaults(self):
        s = Settings(requests_per_minute=60, concurrent_batches=3, export_page_size=100)
        assert s.requests_per_minute == 60
        assert s.concurrent_batches == 3
        assert s.export_page_size == 100

    def test_test_suite_runs_on_memory_backend(self):
        assert get_settings().state_backend == "memory"

    def test_fixture_settings(self, mock_settings):
        assert mock_settings.crm_api_token == "test-crm-token"
        assert mock_settings.commerce_total_header == "X-Total-Count"


class TestExportConstants:

    def test_data_types(self):
        assert DATA_TYPES == ("customer", "product", "sale")

    def test_every_data_type_has_an_endpoint(self):
        assert UPLOAD_ENDPOINTS == {
            "customer": "/customers/upload/",
            "product": "/products/upload/",
            "sale": "/sales/upload/",
        }

    def test_accepted_single_codes(self):
        assert ACCEPTED_SINGLE_CODES == {200, 201, 429}

    @pytest.mark.parametrize("data_type", DATA_TYPES)
    def test_naming_helpers(self, data_type):
        assert payload_key(data_type) == f"{data_type}s"
        assert sync_hook(data_type) == f"{data_type}_sync"
        assert export_hook(data_type) == f"{data_type}_export"
