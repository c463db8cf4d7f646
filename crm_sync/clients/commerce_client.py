"""
Commerce platform HTTP client — paginated reads of customers, products, sales.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from crm_sync.core.config import Settings
from crm_sync.core.exceptions import ExternalAPIError, RateLimitError

logger = logging.getLogger("commerce_client")


def _retry_after(resp: httpx.Response, default: int = 60) -> int:
    try:
        return int(resp.headers.get("Retry-After", default))
    except ValueError:
        return default


class CommerceClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._base_url = (settings.commerce_api_url or "").rstrip("/")
        self._total_header = settings.commerce_total_header
        self._transport = transport
        self._auth = None
        if settings.commerce_api_key and settings.commerce_api_secret:
            self._auth = httpx.BasicAuth(settings.commerce_api_key, settings.commerce_api_secret)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        logger.debug("commerce request path=%s params=%s", path, params)
        try:
            async with httpx.AsyncClient(timeout=30.0, auth=self._auth, transport=self._transport) as client:
                resp = await client.get(url, params=params, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise ExternalAPIError("Commerce", str(exc) or exc.__class__.__name__) from exc
        if resp.status_code == 429:
            raise RateLimitError("Commerce", _retry_after(resp))
        return resp

    async def list_collection(self, collection: str, offset: int, limit: int) -> List[Dict[str, Any]]:
        """
        Fetch up to ``limit`` records of ``collection`` starting at ``offset``, ordered by id.

        A page shorter than ``limit`` means the collection is exhausted.
        """
        params = {"offset": offset, "limit": limit, "orderby": "id", "order": "asc"}
        resp = await self._get(collection, params=params)
        if resp.status_code >= 400:
            raise ExternalAPIError("Commerce", resp.text, status_code=resp.status_code)
        body = resp.json() if resp.text else []
        return body if isinstance(body, list) else []

    async def count_collection(self, collection: str) -> int:
        """Total size of ``collection`` from the total-count response header."""
        resp = await self._get(collection, params={"offset": 0, "limit": 1})
        if resp.status_code >= 400:
            raise ExternalAPIError("Commerce", resp.text, status_code=resp.status_code)
        total = resp.headers.get(self._total_header)
        try:
            return int(total) if total is not None else 0
        except ValueError:
            logger.warning("commerce total header not numeric collection=%s value=%s", collection, total)
            return 0

    async def get_item(self, collection: str, item_id) -> Optional[Dict[str, Any]]:
        """Fetch one record, or None if the platform does not know it."""
        resp = await self._get(f"{collection}/{item_id}")
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise ExternalAPIError("Commerce", resp.text, status_code=resp.status_code)
        return resp.json()
