"""
Unit tests for the CRM and commerce HTTP clients.

Uses httpx.MockTransport so requests never leave the process.

Version: 1.0.0
"""
import json

import httpx
import pytest

from crm_sync.clients.commerce_client import CommerceClient
from crm_sync.clients.crm_client import CrmClient
from crm_sync.core.exceptions import ExternalAPIError, RateLimitError, UploadTransportError


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# CrmClient
# ---------------------------------------------------------------------------

class TestCrmClient:

    @pytest.mark.asyncio
    async def test_upload_posts_json_with_token(self, mock_settings):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, text='{"response": "ok"}')

        client = CrmClient(mock_settings, transport=httpx.MockTransport(handler))
        response = await client.upload_data("/products/upload/", {"products": [{"id": 1}]})

        assert response.code == 201
        assert response.body == '{"response": "ok"}'
        assert seen["url"] == "https://crm.test/api/products/upload/"
        assert seen["auth"] == "Token test-crm-token"
        assert seen["body"] == {"products": [{"id": 1}]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 429, 500])
    async def test_error_codes_are_returned_not_raised(self, mock_settings, status):
        transport = httpx.MockTransport(lambda request: httpx.Response(status, text="nope"))
        client = CrmClient(mock_settings, transport=transport)

        response = await client.upload_data("/sales/upload/", {"sales": []})

        assert response.code == status
        assert response.body == "nope"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_upload_transport_error(self, mock_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = CrmClient(mock_settings, transport=httpx.MockTransport(handler))

        with pytest.raises(UploadTransportError) as exc_info:
            await client.upload_data("/customers/upload/", {"customers": []})
        assert "connection refused" in exc_info.value.message


# ---------------------------------------------------------------------------
# CommerceClient
# ---------------------------------------------------------------------------

class TestCommerceClient:

    @pytest.mark.asyncio
    async def test_list_collection_pages_by_id(self, mock_settings):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])

        client = CommerceClient(mock_settings, transport=httpx.MockTransport(handler))
        items = await client.list_collection("products", offset=500, limit=2)

        assert items == [{"id": 1}, {"id": 2}]
        assert seen["path"].endswith("/products")
        assert seen["params"] == {"offset": "500", "limit": "2", "orderby": "id", "order": "asc"}

    @pytest.mark.asyncio
    async def test_count_collection_reads_total_header(self, mock_settings):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=[], headers={"X-Total-Count": "1200"})
        )
        client = CommerceClient(mock_settings, transport=transport)
        assert await client.count_collection("orders") == 1200

    @pytest.mark.asyncio
    async def test_count_collection_without_header_is_zero(self, mock_settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
        client = CommerceClient(mock_settings, transport=transport)
        assert await client.count_collection("orders") == 0

    @pytest.mark.asyncio
    async def test_get_item_404_is_none(self, mock_settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, json={}))
        client = CommerceClient(mock_settings, transport=transport)
        assert await client.get_item("customers", 7) is None

    @pytest.mark.asyncio
    async def test_server_error_raises_external_api_error(self, mock_settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))
        client = CommerceClient(mock_settings, transport=transport)

        with pytest.raises(ExternalAPIError) as exc_info:
            await client.list_collection("customers", 0, 10)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rate_limited_read_raises_with_retry_after(self, mock_settings):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(429, headers={"Retry-After": "12"}, text="slow down")
        )
        client = CommerceClient(mock_settings, transport=transport)

        with pytest.raises(RateLimitError) as exc_info:
            await client.count_collection("products")
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_basic_auth_sent(self, mock_settings):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization", "")
            return httpx.Response(200, json={"id": 3})

        client = CommerceClient(mock_settings, transport=httpx.MockTransport(handler))
        assert await client.get_item("orders", 3) == {"id": 3}
        assert seen["auth"].startswith("Basic ")
