import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from crm_sync import __version__
from crm_sync.core.config import settings
from crm_sync.routes.exports import router as exports_router
from crm_sync.routes.health import router as health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler.

    On startup:
    - Log the CRM request budget and state backend
    - Verify Redis connection
    """
    logger.info("=== CRM Sync Starting ===")
    logger.info(
        f"CRM budget: {settings.requests_per_minute} requests/min, "
        f"{settings.concurrent_batches} concurrent batches, page size {settings.export_page_size}"
    )

    if settings.state_backend == "memory":
        logger.warning("State backend is in-memory: export state is lost on restart")
    else:
        try:
            from crm_sync.container import get_redis_client
            get_redis_client().ping()
            logger.info("Redis connection verified")
        except Exception as e:
            logger.warning(f"Redis unavailable at startup: {e}")

    logger.info("=== CRM Sync Ready ===")

    yield

    logger.info("=== CRM Sync Shutting Down ===")


app = FastAPI(title="CRM Sync", version=__version__, lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

app.include_router(health_router)
app.include_router(exports_router)
