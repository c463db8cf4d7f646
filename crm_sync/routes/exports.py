"""
Export routes — item sync triggers, export launch, export status.

Routes:
- POST /sync/{data_type}/{item_id}   schedule a single-item sync
- POST /exports/{data_type}/launch   launch a mass export (reload-safe)
- GET  /exports/status               per-data-type export data and notices
Version: 1.0.0
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from crm_sync.container import get_data_sync, get_notice_store, get_response_handler
from crm_sync.core.constants.export import DATA_TYPES
from crm_sync.core.exceptions import UnknownDataTypeError
from crm_sync.db.notice_store import NoticeStore
from crm_sync.schemas.export import (
    ExportStatusResponse,
    LaunchExportRequest,
    LaunchExportResponse,
    SyncItemResponse,
)
from crm_sync.services.data_sync import DataSync
from crm_sync.services.export_response_handler import ExportResponseHandler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["exports"])


def resolve_data_sync(data_type: str) -> DataSync:
    try:
        return get_data_sync(data_type)
    except UnknownDataTypeError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/sync/{data_type}/{item_id}", response_model=SyncItemResponse)
async def trigger_item_sync(
    data_type: str,
    item_id: str,
    force: bool = Query(False, description="Schedule even if a sync is already pending"),
    data_sync: DataSync = Depends(resolve_data_sync),
):
    """Schedule a sync of one changed item."""
    scheduled = data_sync.schedule_single_update(item_id, force=force)
    return SyncItemResponse(data_type=data_type, item_id=item_id, scheduled=scheduled)


@router.post("/exports/{data_type}/launch", response_model=LaunchExportResponse)
async def launch_export(
    data_type: str,
    request: Optional[LaunchExportRequest] = None,
    data_sync: DataSync = Depends(resolve_data_sync),
):
    """Launch a mass export of ``data_type``."""
    request = request or LaunchExportRequest()
    logger.info(f"Export launch requested: {data_type}, launch_id={request.launch_id}, resume={request.resume}")
    return data_sync.maybe_launch_export(request.launch_id, resume=request.resume)


@router.get("/exports/status", response_model=ExportStatusResponse)
async def get_export_status(
    handler: ExportResponseHandler = Depends(get_response_handler),
    notices: NoticeStore = Depends(get_notice_store),
):
    """Export data of every data type plus active admin notices."""
    return ExportStatusResponse(
        export_in_progress=handler.is_export_in_progress(),
        data_types={data_type: handler.get_data_type_export_data(data_type) for data_type in DATA_TYPES},
        notices=notices.active(),
    )
