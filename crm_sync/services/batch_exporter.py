"""
Batch exporter — uploads one page of a data type per invocation.

Pagination state (offset into the primary collection, sub_offset into the
secondary one) lives in the progress store, so every invocation picks up
where the previous one stopped, whichever worker runs it.

Page layout:
    sub_offset == 0  -> primary items from offset
    primary short    -> fill the rest of the page with secondary items
    both empty       -> 220, nothing uploaded, nothing persisted

Offsets move only when the CRM accepted the page (200), so a page that
got 429 is re-sent unchanged by its retry job. When a run id is given, the
tracker is only read and written while that run still owns it.
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from crm_sync.clients.crm_client import CrmClient
from crm_sync.core.constants.export import (
    CODE_NOTHING_TO_EXPORT,
    CODE_TRANSPORT_FAILURE,
    HTTP_OK,
    UPLOAD_ENDPOINTS,
    payload_key,
)
from crm_sync.core.exceptions import UploadTransportError
from crm_sync.db.progress_store import ProgressStore
from crm_sync.schemas.export import ApiResponse, BatchResult, ExportState
from crm_sync.sources.base import DataSource, Formatter

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


class BatchExporter:
    def __init__(
        self,
        data_type: str,
        source: DataSource,
        formatter: Formatter,
        client: CrmClient,
        progress_store: ProgressStore,
        page_size: int = DEFAULT_PAGE_SIZE,
        endpoint: Optional[str] = None,
    ) -> None:
        self.data_type = data_type
        self.page_size = page_size
        self.endpoint = endpoint or UPLOAD_ENDPOINTS[data_type]
        self._source = source
        self._formatter = formatter
        self._client = client
        self._store = progress_store

    async def upload(self, records: List[Dict[str, Any]]) -> ApiResponse:
        """Upload records as ``{"<data_type>s": [...]}``."""
        return await self._client.upload_data(self.endpoint, {payload_key(self.data_type): records})

    async def batch_update(self, run_id: Optional[str] = None) -> BatchResult:
        tracker = self._store.get(self.data_type)
        if run_id is not None and tracker.run_id != run_id:
            logger.info(f"{self.data_type} tracker belongs to run {tracker.run_id}, not {run_id}; skipping page")
            return BatchResult(code=CODE_NOTHING_TO_EXPORT, fenced=True)

        offset = tracker.offset
        sub_offset = tracker.sub_offset

        records: List[Dict[str, Any]] = []

        primary_count = 0
        if sub_offset == 0:
            items = await self._source.fetch_page(offset, self.page_size)
            records.extend(self._formatter.format_item(item) for item in items)
            primary_count = len(records)

        secondary_count = 0
        if primary_count < self.page_size:
            sub_items = await self._source.fetch_sub_page(sub_offset, self.page_size - primary_count)
            records.extend(self._formatter.format_sub_item(sub_item) for sub_item in sub_items)
            secondary_count = len(records) - primary_count

        if not records:
            logger.info(f"{self.data_type} export: nothing left at offset={offset}, sub_offset={sub_offset}")
            return BatchResult(code=CODE_NOTHING_TO_EXPORT)

        try:
            api_response = await self.upload(records)
        except UploadTransportError as e:
            logger.warning(f"{self.data_type} export page upload failed: {e.message}")
            return BatchResult(code=CODE_TRANSPORT_FAILURE, body=e.message)

        fenced = False
        if api_response.code == HTTP_OK:
            saved = self._save_tracker(
                run_id, offset, sub_offset, offset + primary_count, sub_offset + secondary_count
            )
            fenced = saved is None
            if fenced:
                saved = self._store.get(self.data_type)
        else:
            # Rejected pages are sent again as-is when retried
            saved = tracker

        logger.info(
            f"{self.data_type} export page uploaded: code={api_response.code}, "
            f"primary={primary_count}, secondary={secondary_count}, "
            f"offset={saved.offset}, sub_offset={saved.sub_offset}"
        )

        return BatchResult(
            code=api_response.code,
            body=api_response.body,
            count=len(records),
            tracker=saved.tracker,
            fenced=fenced,
        )

    def _save_tracker(
        self,
        run_id: Optional[str],
        read_offset: int,
        read_sub_offset: int,
        offset: int,
        sub_offset: int,
    ) -> Optional[ExportState]:
        """
        Move both offsets in one write.

        Returns None, writing nothing, when another run took over the tracker
        or someone else moved the offsets since we read them.
        """
        now = datetime.now(timezone.utc)
        fenced = False

        def advance(state: ExportState) -> Optional[ExportState]:
            nonlocal fenced
            fenced = False
            if run_id is not None and state.run_id != run_id:
                logger.warning(
                    f"{self.data_type} tracker taken over by run {state.run_id} during upload "
                    f"of run {run_id}, not advancing"
                )
                fenced = True
                return None
            if state.offset != read_offset or state.sub_offset != read_sub_offset:
                logger.warning(
                    f"{self.data_type} tracker moved during upload "
                    f"(read {read_offset}/{read_sub_offset}, now {state.offset}/{state.sub_offset}), "
                    f"not advancing"
                )
                fenced = True
                return None
            return state.model_copy(update={"offset": offset, "sub_offset": sub_offset, "updated": now})

        saved = self._store.update(self.data_type, advance)
        return None if fenced else saved
