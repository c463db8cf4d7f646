"""
Export constants — data types, endpoints, hook names, response codes.

Export/synchronization engine constants.
Version: 1.0.0
"""

# Synchronized entity categories
DATA_TYPES: tuple[str, ...] = ("customer", "product", "sale")

# CRM upload endpoint per data type
UPLOAD_ENDPOINTS: dict[str, str] = {
    "customer": "/customers/upload/",
    "product": "/products/upload/",
    "sale": "/sales/upload/",
}

HTTP_OK: int = 200
HTTP_CREATED: int = 201
HTTP_BAD_REQUEST: int = 400
HTTP_NOT_FOUND: int = 404
HTTP_TOO_MANY_REQUESTS: int = 429

# Response codes the single-item path accepts without failing the job
ACCEPTED_SINGLE_CODES: frozenset[int] = frozenset({HTTP_OK, HTTP_CREATED, HTTP_TOO_MANY_REQUESTS})

# Sentinel codes produced by batch_update itself (never sent by the CRM)
CODE_NOTHING_TO_EXPORT: int = 220
CODE_TRANSPORT_FAILURE: int = 444

UNKNOWN_ERROR_REASON: str = "Unknown error"

# Back-reference added to secondary (variant) records
PARENT_REFERENCE_FIELD: str = "main_product_ids"

# Compare-and-set attempts before giving up on an export state update
MAX_STATE_UPDATE_ATTEMPTS: int = 5

# Admin notices
NOTICE_EXPORT_IN_PROGRESS: str = "export_in_progress"
NOTICE_EXPORT_COMPLETED: str = "export_completed"
NOTICE_EXPORT_FAILED: str = "export_failed"


def payload_key(data_type: str) -> str:
    """Top-level key of an upload body, e.g. 'products'."""
    return f"{data_type}s"


def sync_hook(data_type: str) -> str:
    """Job hook for single-item sync of a data type."""
    return f"{data_type}_sync"


def export_hook(data_type: str) -> str:
    """Job hook for paginated export continuation of a data type."""
    return f"{data_type}_export"
