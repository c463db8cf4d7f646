"""
CRM HTTP client — uploads formatted records to the CRM upload endpoints.

Response codes are returned to the caller as ApiResponse, never raised:
the export engine decides what 4xx/5xx mean. Only transport failures
(no response at all) raise UploadTransportError.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, Optional

import httpx

from crm_sync.core.config import Settings
from crm_sync.core.exceptions import UploadTransportError
from crm_sync.schemas.export import ApiResponse

logger = logging.getLogger("crm_client")


class CrmClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._base_url = (settings.crm_api_url or "").rstrip("/")
        self._token = settings.crm_api_token
        self._timeout = settings.crm_request_timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._token:
            headers["Authorization"] = f"Token {self._token}"
        return headers

    async def upload_data(self, endpoint: str, data: Dict[str, Any]) -> ApiResponse:
        """
        POST ``data`` to ``endpoint`` (e.g. '/products/upload/').

        Returns:
            ApiResponse with the status code and raw body

        Raises:
            UploadTransportError: connection error, timeout or other transport failure
        """
        url = f"{self._base_url}{endpoint}"
        record_count = sum(len(v) for v in data.values() if isinstance(v, list))
        logger.info("crm upload endpoint=%s records=%s", endpoint, record_count)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, headers=self._headers(), json=data)
        except httpx.HTTPError as exc:
            logger.warning("crm upload transport error endpoint=%s error=%s", endpoint, exc)
            raise UploadTransportError(str(exc) or exc.__class__.__name__) from exc

        logger.info("crm response status=%s endpoint=%s", resp.status_code, endpoint)
        return ApiResponse(code=resp.status_code, body=resp.text)
