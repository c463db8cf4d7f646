"""
DataSync — per-data-type facade over the sync and export engine.

Single-item flow:
    schedule_single_update -> (queue) -> run_single_sync
        -> throttle_single_update -> single_update -> CRM

Mass export flow:
    maybe_launch_export -> (queue) -> run_export_page -> batch_update
        -> handle_export_response -> (queue) -> run_export_page ...
Version: 1.0.0
"""
import logging
from typing import Any, Callable, Optional

from crm_sync.core.constants.export import (
    CODE_NOTHING_TO_EXPORT,
    CODE_TRANSPORT_FAILURE,
    NOTICE_EXPORT_IN_PROGRESS,
)
from crm_sync.db.notice_store import NoticeStore
from crm_sync.db.progress_store import ProgressStore
from crm_sync.schemas.export import (
    ApiResponse,
    BatchResult,
    ExportStatus,
    JobResult,
    LaunchExportResponse,
)
from crm_sync.services.batch_exporter import BatchExporter
from crm_sync.services.dedup_scheduler import DedupScheduler
from crm_sync.services.export_response_handler import ExportResponseHandler
from crm_sync.services.throttle_controller import ThrottleController
from crm_sync.sources.base import DataSource, Formatter

logger = logging.getLogger(__name__)


class DataSync:
    def __init__(
        self,
        data_type: str,
        source: DataSource,
        formatter: Formatter,
        exporter: BatchExporter,
        throttle: ThrottleController,
        scheduler: DedupScheduler,
        handler: ExportResponseHandler,
        notices: NoticeStore,
        progress_store: ProgressStore,
        should_sync: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self.data_type = data_type
        self._source = source
        self._formatter = formatter
        self._exporter = exporter
        self._throttle = throttle
        self._scheduler = scheduler
        self._handler = handler
        self._notices = notices
        self._store = progress_store
        self._should_sync = should_sync

    @property
    def page_size(self) -> int:
        return self._exporter.page_size

    # ------------------------------------------------------------------
    # Single-item sync
    # ------------------------------------------------------------------

    async def single_update(self, item_id) -> Optional[ApiResponse]:
        """
        Upload one item as ``{"<data_type>s": [record]}``.

        Returns:
            The CRM response, or None if the item does not exist
        """
        item = await self._source.get_item(item_id)
        if item is None:
            logger.warning(f"#{item_id} {self.data_type.upper()} not found, nothing to upload")
            return None

        logger.info(f"#{item_id} {self.data_type.upper()} SYNC, UPLOADING TO CRM")
        return await self._exporter.upload([self._formatter.format_item(item)])

    def schedule_single_update(self, item_id, force: bool = False, item: Any = None) -> bool:
        """
        Queue a sync of ``item_id`` unless one is already pending.

        ``item`` is the changed record as seen by the caller, if it has one;
        the ``should_sync`` predicate decides on it (or on the id alone).
        """
        if self._should_sync is not None and not self._should_sync(item if item is not None else item_id):
            logger.debug(f"#{item_id} {self.data_type} filtered out, not scheduling sync")
            return False
        return self._scheduler.schedule_single_update(self.data_type, item_id, force=force)

    async def throttle_single_update(self, item_id) -> JobResult:
        return await self._throttle.throttle_single_update(
            self.data_type,
            item_id,
            lambda: self.single_update(item_id),
            lambda: self._scheduler.schedule_single_update(self.data_type, item_id, force=True),
        )

    async def run_single_sync(self, item_id) -> JobResult:
        """Entry point of a queued sync job."""
        self._scheduler.begin_single_update(self.data_type, item_id)
        return await self.throttle_single_update(item_id)

    # ------------------------------------------------------------------
    # Mass export
    # ------------------------------------------------------------------

    async def batch_update(self, run_id: Optional[str] = None) -> BatchResult:
        return await self._exporter.batch_update(run_id)

    async def total_count(self) -> int:
        return await self._source.count() + await self._source.count_sub()

    async def run_export_page(self, offset: int, run_id: Optional[str] = None) -> JobResult:
        """
        Entry point of a queued export page job.

        Args:
            offset: Combined position of the page within the export
            run_id: Export run that scheduled this page
        """
        self._scheduler.begin_export_page(self.data_type)

        state = self._store.get(self.data_type)
        if run_id is not None and state.run_id != run_id:
            logger.info(
                f"{self.data_type} export page at offset {offset} belongs to run {run_id}, "
                f"current run is {state.run_id}; discarding"
            )
            return JobResult.proceed("stale_run")
        if state.status != ExportStatus.IN_PROGRESS:
            logger.info(f"{self.data_type} export is {state.status.value}, discarding page at offset {offset}")
            return JobResult.proceed("not_in_progress")

        run_id = run_id or state.run_id
        result = await self.batch_update(run_id)

        if result.fenced:
            logger.info(f"{self.data_type} export page at offset {offset} of run {run_id} lost the tracker; discarding")
            return JobResult.proceed("stale_run")

        if result.code == CODE_NOTHING_TO_EXPORT:
            return self._handler.finalize_export(self.data_type, run_id)

        if result.code == CODE_TRANSPORT_FAILURE:
            return self._handler.fail_export(self.data_type, result.body, run_id)

        total_count = await self.total_count()
        return self._handler.handle_export_response(
            self.data_type,
            offset,
            self.page_size,
            result.count,
            total_count,
            result,
            run_id=run_id,
        )

    def fail_export(self, reason: str, run_id: Optional[str] = None) -> JobResult:
        return self._handler.fail_export(self.data_type, reason, run_id)

    def maybe_launch_export(self, launch_id: Optional[str] = None, resume: bool = False) -> LaunchExportResponse:
        """
        Launch a mass export unless this launch already happened or one is queued.

        Args:
            launch_id: Id of the admin action; repeating it (page reload) is a no-op
            resume: Continue from the stored tracker instead of starting over
        """
        state = self._store.get(self.data_type)

        if launch_id is not None and launch_id == state.run_id:
            logger.info(f"{self.data_type} export launch {launch_id} already handled")
            return LaunchExportResponse(
                data_type=self.data_type,
                launched=False,
                run_id=state.run_id,
                message="Export already launched",
            )

        if self._scheduler.is_export_pending(self.data_type):
            logger.info(f"{self.data_type} export already queued, not launching")
            return LaunchExportResponse(
                data_type=self.data_type,
                launched=False,
                run_id=state.run_id,
                message="Export already queued",
            )

        self._notices.possibly_add(NOTICE_EXPORT_IN_PROGRESS)
        state = self._handler.reset_export_data(self.data_type, run_id=launch_id, resume=resume)

        offset = state.offset + state.sub_offset if resume else 0
        self._scheduler.schedule_export_page(self.data_type, offset, state.run_id)

        logger.info(f"{self.data_type} export launched: run={state.run_id}, offset={offset}")
        return LaunchExportResponse(
            data_type=self.data_type,
            launched=True,
            run_id=state.run_id,
            message="Export launched",
        )
