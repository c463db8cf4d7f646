"""
Throttle controller — keeps single-item uploads under the CRM request budget.

After each upload the worker sleeps so that, per worker, uploads are spaced
at least ``60 / requests_per_minute * (concurrent_batches + 1)`` seconds
apart. The extra batch covers queues launched by hand, which the
configured concurrency does not know about.

The sleep blocks only the worker running the job.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol

from crm_sync.core.constants.export import ACCEPTED_SINGLE_CODES, HTTP_TOO_MANY_REQUESTS
from crm_sync.core.exceptions import UploadTransportError
from crm_sync.db.progress_store import ProgressStore
from crm_sync.schemas.export import ApiResponse, ExportStatus, JobResult

logger = logging.getLogger(__name__)


class RateConfig(Protocol):
    requests_per_minute: int
    concurrent_batches: int


@dataclass
class StaticRateConfig:
    requests_per_minute: int = 180
    concurrent_batches: int = 1


def compute_sleep_microseconds(elapsed_us: int, requests_per_minute: int, concurrent_batches: int) -> int:
    """Microseconds left to wait so this worker stays inside its share of the budget."""
    batches = concurrent_batches + 1
    return int((60 / requests_per_minute * batches * 1_000_000) - elapsed_us)


class ThrottleController:
    def __init__(
        self,
        rate_config: RateConfig,
        progress_store: ProgressStore,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Callable[[], int] = time.perf_counter_ns,
    ) -> None:
        self._rate_config = rate_config
        self._store = progress_store
        self._sleep = sleep or asyncio.sleep
        self._clock = clock

    async def throttle_single_update(
        self,
        data_type: str,
        item_id,
        single_update: Callable[[], Awaitable[Optional[ApiResponse]]],
        reschedule: Callable[[], bool],
    ) -> JobResult:
        """
        Run one single-item upload, sleep off the rest of its time slot, classify the result.

        Args:
            data_type: Data type of the item
            item_id: Item being uploaded
            single_update: Performs the upload; None means the item was not uploaded
            reschedule: Force-schedules the same item again (used on 429)
        """
        start_time = self._clock()

        try:
            response = await single_update()
        except UploadTransportError as e:
            logger.warning(f"#{item_id} {data_type} upload, transport error: {e.message}")
            self._record_item_status(data_type, item_id, ExportStatus.FAILED)
            return JobResult.proceed("transport_error", item_id=str(item_id))

        if response is None:
            # Not meant to be uploaded in the first place
            self._record_item_status(data_type, item_id, ExportStatus.FAILED)
            return JobResult.proceed("not_uploaded", item_id=str(item_id))

        requests_per_minute = self._rate_config.requests_per_minute
        concurrent_batches = self._rate_config.concurrent_batches + 1

        time_elapsed_us = round((self._clock() - start_time) / 1000)
        time_to_sleep_us = compute_sleep_microseconds(
            time_elapsed_us, requests_per_minute, self._rate_config.concurrent_batches
        )
        if time_to_sleep_us > 0:
            await self._sleep(time_to_sleep_us / 1_000_000)

        if response.code not in ACCEPTED_SINGLE_CODES:
            logger.warning(
                f"#{item_id} {data_type} upload, unexpected response code {response.code}, FAILING"
            )
            self._record_item_status(data_type, item_id, ExportStatus.FAILED)
            return JobResult.fatal(
                f"Unexpected response code '{response.code}'",
                item_id=str(item_id),
                code=response.code,
            )

        if response.code == HTTP_TOO_MANY_REQUESTS:
            logger.warning(
                f"#{item_id} {data_type} upload, response code 429 (TOO MANY REQUESTS), RESCHEDULING"
            )
            # Forced: this job's own marker may still be around
            reschedule()
            self._record_item_status(data_type, item_id, ExportStatus.FAILED)
            return JobResult.retry_after(0, "rate_limited", item_id=str(item_id))

        logger.info(
            f"#{item_id} {data_type} successful upload, concurrent batches: {concurrent_batches}, "
            f"time to sleep: {time_to_sleep_us / 1_000_000}s"
        )
        self._record_item_status(data_type, item_id, ExportStatus.COMPLETED)
        return JobResult.proceed("uploaded", item_id=str(item_id), code=response.code)

    def _record_item_status(self, data_type: str, item_id, status: ExportStatus) -> None:
        now = datetime.now(timezone.utc)
        self._store.update(
            data_type,
            lambda s: s.model_copy(update={
                "last_item_id": str(item_id),
                "last_item_status": status,
                "last_item_time": now,
            }),
        )
