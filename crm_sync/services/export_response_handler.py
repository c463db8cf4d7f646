"""
Export response handler — turns CRM responses into export state transitions.

States per data type:
    idle -> in_progress -> completed | failed
    failed/completed -> in_progress only through reset_export_data

| Response           | Action                                   | Status      |
|--------------------|------------------------------------------|-------------|
| 200, more to go    | schedule next page at offset + limit     | in_progress |
| 200, done          | completion time + count, notices         | completed   |
| 429                | same page again after retry delay        | unchanged   |
| 404                | failure notice                           | failed      |
| 400                | failure notice, body kept as reason      | failed      |
| other / malformed  | failure notice, "Unknown error"          | failed      |

Notices are flipped only when no other data type still has an export in
progress, so one finished export does not announce "all done" while its
siblings are running.
Version: 1.0.0
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from crm_sync.core.constants.export import (
    DATA_TYPES,
    HTTP_BAD_REQUEST,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_TOO_MANY_REQUESTS,
    NOTICE_EXPORT_COMPLETED,
    NOTICE_EXPORT_FAILED,
    NOTICE_EXPORT_IN_PROGRESS,
    UNKNOWN_ERROR_REASON,
)
from crm_sync.db.notice_store import NoticeStore
from crm_sync.db.progress_store import ProgressStore
from crm_sync.schemas.export import DataTypeExportData, ExportState, ExportStatus, JobResult
from crm_sync.services.dedup_scheduler import DedupScheduler

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 60

EXPORT_DATA_PREFIX = "crm_sync_export_"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportResponseHandler:
    def __init__(
        self,
        progress_store: ProgressStore,
        notices: NoticeStore,
        scheduler: DedupScheduler,
        data_types: Iterable[str] = DATA_TYPES,
        retry_delay: int = DEFAULT_RETRY_DELAY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = progress_store
        self._notices = notices
        self._scheduler = scheduler
        self._data_types = tuple(data_types)
        self._retry_delay = retry_delay
        self._clock = clock

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def handle_export_response(
        self,
        data_type: str,
        offset: int,
        limit: int,
        batch_count: int,
        total_count: int,
        api_response: Any,
        run_id: Optional[str] = None,
    ) -> JobResult:
        """
        Update export state after a mass export page upload.

        Args:
            data_type: Data type being exported
            offset: Offset of the page that was uploaded
            limit: Page size
            batch_count: Records in the uploaded page
            total_count: Total records to export for the data type
            api_response: Upload response (anything with an int ``code``)
            run_id: Export run the page belongs to
        """
        logger.info(
            f"Handling response for {data_type}. With total count: {total_count}. "
            f"Offset: {offset}. Limit: {limit}. Batch count: {batch_count}"
        )

        code = getattr(api_response, "code", None)
        if not isinstance(code, int):
            logger.warning(f"{data_type} export: malformed response {api_response!r}")
            return self._fail(data_type, None, run_id)

        if code == HTTP_OK:
            exported_count = offset + batch_count
            if offset + limit < total_count:
                state = self._transition(data_type, run_id, {
                    "status": ExportStatus.IN_PROGRESS,
                    "exported_count": exported_count,
                    "total_count": total_count,
                })
                if state is None:
                    return JobResult.proceed("stale_run")
                self._scheduler.schedule_export_page(data_type, offset + limit, state.run_id)
                return JobResult.proceed("continued", next_offset=offset + limit)

            logger.info(f"Handling response for {data_type} and concluding that we are done!")
            return self._complete(data_type, run_id, exported_count, total_count)

        if code == HTTP_TOO_MANY_REQUESTS:
            logger.warning(f"{data_type} export rate limited at offset {offset}, retrying in {self._retry_delay}s")
            self._scheduler.schedule_export_page(
                data_type, offset, run_id or self._store.get(data_type).run_id, delay_seconds=self._retry_delay
            )
            return JobResult.retry_after(self._retry_delay, "rate_limited", offset=offset)

        if code == HTTP_NOT_FOUND:
            return self._fail(data_type, None, run_id, code=code)

        if code == HTTP_BAD_REQUEST:
            return self._fail(data_type, getattr(api_response, "body", "") or "", run_id, code=code)

        return self._fail(data_type, UNKNOWN_ERROR_REASON, run_id, code=code)

    def finalize_export(self, data_type: str, run_id: Optional[str] = None) -> JobResult:
        """Nothing left to upload: close the run out."""
        current = self._store.get(data_type)
        return self._complete(data_type, run_id, current.offset + current.sub_offset, current.total_count)

    def fail_export(self, data_type: str, reason: str, run_id: Optional[str] = None) -> JobResult:
        """Terminal failure that never got a response code (transport failure)."""
        return self._fail(data_type, reason, run_id)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def reset_export_data(self, data_type: str, run_id: Optional[str] = None, resume: bool = False) -> ExportState:
        """
        Start a new export run for ``data_type``.

        Stamps a fresh run id, so continuation jobs of earlier runs are
        discarded when they execute. Unless ``resume`` is set the tracker
        is rewound to the start of both collections.
        """
        new_run_id = run_id or uuid.uuid4().hex
        now = self._clock()

        def reset(state: ExportState) -> ExportState:
            changes: Dict[str, Any] = {
                "run_id": new_run_id,
                "status": ExportStatus.IN_PROGRESS,
                "failure_reason": None,
                "start_time": now,
                "exported_count": 0,
                "completed_time": None,
            }
            if not resume:
                changes.update({"offset": 0, "sub_offset": 0, "updated": None, "total_count": None})
            return state.model_copy(update=changes)

        state = self._store.update(data_type, reset)
        logger.info(f"{data_type} export reset: run={new_run_id}, resume={resume}")
        return state

    def is_export_in_progress(self, data_types: Optional[Iterable[str]] = None) -> bool:
        states = self._store.get_many(data_types or self._data_types)
        return any(state.status == ExportStatus.IN_PROGRESS for state in states.values())

    @staticmethod
    def get_export_data_keys(data_type: str) -> Dict[str, str]:
        prefix = f"{EXPORT_DATA_PREFIX}{data_type}_"
        return {
            "status": f"{prefix}status",
            "completed_time": f"{prefix}completed_time",
            "exported_count": f"{prefix}exported_count",
            "start_time": f"{prefix}start_time",
        }

    def get_data_type_export_data(self, data_type: str) -> DataTypeExportData:
        state = self._store.get(data_type)
        return DataTypeExportData(
            status=state.status_label,
            completed_time=state.completed_time,
            exported_count=state.exported_count,
            start_time=state.start_time,
            total_count=state.total_count,
            run_id=state.run_id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, data_type: str, run_id: Optional[str], changes: Dict[str, Any]) -> Optional[ExportState]:
        """Apply ``changes`` if the stored run is still ``run_id``; None when fenced out."""
        fenced = False

        def apply(state: ExportState) -> Optional[ExportState]:
            nonlocal fenced
            if run_id is not None and state.run_id != run_id:
                fenced = True
                return None
            return state.model_copy(update=changes)

        state = self._store.update(data_type, apply)
        if fenced:
            logger.info(f"{data_type} response for stale run {run_id} ignored (current run {state.run_id})")
            return None
        return state

    def _complete(
        self,
        data_type: str,
        run_id: Optional[str],
        exported_count: int,
        total_count: Optional[int],
    ) -> JobResult:
        changes: Dict[str, Any] = {
            "status": ExportStatus.COMPLETED,
            "failure_reason": None,
            "completed_time": self._clock(),
            "exported_count": exported_count,
        }
        if total_count is not None:
            changes["total_count"] = total_count

        state = self._transition(data_type, run_id, changes)
        if state is None:
            return JobResult.proceed("stale_run")

        # Check if we have any other exports in progress. If not, show "Completed" notice
        if not self.is_export_in_progress():
            self._notices.possibly_delete(NOTICE_EXPORT_IN_PROGRESS)
            self._notices.possibly_add(NOTICE_EXPORT_COMPLETED)

        logger.info(f"{data_type} export completed: {exported_count} exported")
        return JobResult.proceed("completed", exported_count=exported_count)

    def _fail(
        self,
        data_type: str,
        reason: Optional[str],
        run_id: Optional[str],
        code: Optional[int] = None,
    ) -> JobResult:
        state = self._transition(data_type, run_id, {
            "status": ExportStatus.FAILED,
            "failure_reason": reason,
        })
        if state is None:
            return JobResult.proceed("stale_run")

        if not self.is_export_in_progress():
            self._notices.possibly_delete(NOTICE_EXPORT_IN_PROGRESS)
        self._notices.possibly_add(NOTICE_EXPORT_FAILED)

        logger.warning(f"{data_type} export failed: code={code}, status={state.status_label}")
        return JobResult.fatal(state.status_label, data_type=data_type, code=code)
