import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # CRM upload API
    crm_api_url: str = os.getenv("CRM_API_URL", "https://example.custobar.com/api")
    crm_api_token: Optional[str] = os.getenv("CRM_API_TOKEN")
    crm_request_timeout: float = float(os.getenv("CRM_REQUEST_TIMEOUT", "30"))

    # Commerce platform (source of customers, products, sales)
    commerce_api_url: str = os.getenv("COMMERCE_API_URL", "http://localhost:8080/wp-json/wc/v3")
    commerce_api_key: Optional[str] = os.getenv("COMMERCE_API_KEY")
    commerce_api_secret: Optional[str] = os.getenv("COMMERCE_API_SECRET")
    commerce_total_header: str = os.getenv("COMMERCE_TOTAL_HEADER", "X-Total-Count")

    # Rate budget shared by every worker talking to the CRM
    requests_per_minute: int = int(os.getenv("CRM_REQUESTS_PER_MINUTE", "180"))
    concurrent_batches: int = int(os.getenv("CRM_CONCURRENT_BATCHES", "1"))

    # Export pagination and retry timing
    export_page_size: int = int(os.getenv("CRM_EXPORT_PAGE_SIZE", "500"))
    rate_limit_retry_seconds: int = int(os.getenv("CRM_RATE_LIMIT_RETRY_SECONDS", "60"))
    pending_job_ttl: int = int(os.getenv("CRM_PENDING_JOB_TTL", "3600"))

    # State backend: "redis" or "memory" (single-process development only)
    state_backend: str = os.getenv("CRM_STATE_BACKEND", "redis")

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
