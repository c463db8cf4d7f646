"""
Export schemas — export state, API responses, batch and job results.

Defines the persisted per-data-type export record and the value objects
passed between the batch exporter, the response handler and the job queue.
Version: 1.0.0
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from crm_sync.core.constants.export import UNKNOWN_ERROR_REASON


class ExportStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ExportState(BaseModel):
    """Persisted export progress for one data type."""
    data_type: str
    status: ExportStatus = ExportStatus.IDLE
    failure_reason: Optional[str] = None

    # Tracker: resumable pagination position
    offset: int = Field(default=0, ge=0)
    sub_offset: int = Field(default=0, ge=0)
    updated: Optional[datetime] = None

    exported_count: int = Field(default=0, ge=0)
    total_count: Optional[int] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    completed_time: Optional[datetime] = None
    run_id: Optional[str] = None

    # Compare-and-set token, bumped on every write
    version: int = Field(default=0, ge=0)

    # Outcome of the most recent single-item sync
    last_item_id: Optional[str] = None
    last_item_status: Optional[ExportStatus] = None
    last_item_time: Optional[datetime] = None

    @property
    def status_label(self) -> str:
        """Status as shown to admins ('failed: <body>', 'Unknown error', ...)."""
        if self.status != ExportStatus.FAILED or not self.failure_reason:
            return self.status.value
        if self.failure_reason == UNKNOWN_ERROR_REASON:
            return UNKNOWN_ERROR_REASON
        return f"failed: {self.failure_reason}"

    @property
    def tracker(self) -> Dict[str, Any]:
        return {
            "offset": self.offset,
            "variant_offset": self.sub_offset,
            "updated": self.updated.isoformat() if self.updated else False,
        }


class ApiResponse(BaseModel):
    """Response of an upload call."""
    code: int
    body: str = ""


class BatchResult(BaseModel):
    """Outcome of one batch_update invocation."""
    code: int
    body: str = ""
    count: int = 0
    tracker: Optional[Dict[str, Any]] = None
    # Another run (or a duplicate job) owns the tracker; nothing was persisted
    fenced: bool = False


class JobAction(str, Enum):
    CONTINUE = "continue"
    RETRY_AFTER = "retry_after"
    FATAL = "fatal"


class JobResult(BaseModel):
    """
    What a unit of work tells the job-queue adapter.

    CONTINUE and RETRY_AFTER finish the job normally (any follow-up job has
    already been enqueued); FATAL makes the adapter fail the job without
    automatic retry.
    """
    action: JobAction
    delay_seconds: int = 0
    reason: Optional[str] = None
    detail: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def proceed(cls, reason: Optional[str] = None, **detail: Any) -> "JobResult":
        return cls(action=JobAction.CONTINUE, reason=reason, detail=detail)

    @classmethod
    def retry_after(cls, delay_seconds: int, reason: Optional[str] = None, **detail: Any) -> "JobResult":
        return cls(action=JobAction.RETRY_AFTER, delay_seconds=delay_seconds, reason=reason, detail=detail)

    @classmethod
    def fatal(cls, reason: str, **detail: Any) -> "JobResult":
        return cls(action=JobAction.FATAL, reason=reason, detail=detail)

    @property
    def is_fatal(self) -> bool:
        return self.action == JobAction.FATAL


class ExportJob(BaseModel):
    """A deferred unit of work handed to the job queue."""
    hook: str
    args: Dict[str, Any]
    delay_seconds: int = 0


# ---------------------------------------------------------------------------
# HTTP request/response models
# ---------------------------------------------------------------------------

class LaunchExportRequest(BaseModel):
    launch_id: Optional[str] = Field(
        None, description="Client-generated id; repeating it does not relaunch"
    )
    resume: bool = Field(False, description="Continue from the stored tracker position")


class LaunchExportResponse(BaseModel):
    data_type: str
    launched: bool
    run_id: Optional[str] = None
    message: str


class SyncItemResponse(BaseModel):
    data_type: str
    item_id: str
    scheduled: bool


class DataTypeExportData(BaseModel):
    """Export data of one data type in the admin key/value layout."""
    status: str
    completed_time: Optional[datetime] = None
    exported_count: int = 0
    start_time: Optional[datetime] = None
    total_count: Optional[int] = None
    run_id: Optional[str] = None


class ExportStatusResponse(BaseModel):
    export_in_progress: bool
    data_types: Dict[str, DataTypeExportData]
    notices: List[str]
