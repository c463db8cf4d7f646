"""
Constants package — re-exports from domain-specific modules.

Usage:
    from crm_sync.core.constants.export import UPLOAD_ENDPOINTS
    # or import everything:
    from crm_sync.core.constants import export
Version: 1.0.0
"""

from crm_sync.core.constants import export
from crm_sync.core.constants.export import (
    DATA_TYPES,
    UPLOAD_ENDPOINTS,
    ACCEPTED_SINGLE_CODES,
    CODE_NOTHING_TO_EXPORT,
    CODE_TRANSPORT_FAILURE,
    UNKNOWN_ERROR_REASON,
    PARENT_REFERENCE_FIELD,
    NOTICE_EXPORT_IN_PROGRESS,
    NOTICE_EXPORT_COMPLETED,
    NOTICE_EXPORT_FAILED,
)

__all__ = [
    "export",
    "DATA_TYPES",
    "UPLOAD_ENDPOINTS",
    "ACCEPTED_SINGLE_CODES",
    "CODE_NOTHING_TO_EXPORT",
    "CODE_TRANSPORT_FAILURE",
    "UNKNOWN_ERROR_REASON",
    "PARENT_REFERENCE_FIELD",
    "NOTICE_EXPORT_IN_PROGRESS",
    "NOTICE_EXPORT_COMPLETED",
    "NOTICE_EXPORT_FAILED",
]
