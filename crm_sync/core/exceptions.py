"""
Custom exception hierarchy for CRM Sync.

Exceptions are categorized as:
- RetryableError: Transient errors that may succeed on a later attempt
- NonRetryableError: Permanent errors that should fail the job immediately

Celery tasks use this split in their retry declarations:
- autoretry_for=(RetryableError,)
- dont_autoretry_for=(NonRetryableError,)

Exceptions that take arguments keep them in ``args`` and build their message
in ``__str__``, so a worker can rebuild them from ``cls(*args)`` when the
failure is serialized into the result backend.
"""


class CrmSyncException(Exception):
    """Base exception for CRM Sync."""
    pass


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(CrmSyncException):
    """
    Base class for errors that may clear up on their own.

    - Network failures talking to the CRM or the commerce platform
    - Rate limits
    - Lost compare-and-set races on export state
    """
    pass


class ExternalAPIError(RetryableError):
    """Error from an external API (CRM, commerce platform)."""
    def __init__(self, service: str, message: str, status_code: int = None):
        super().__init__(service, message, status_code)
        self.service = service
        self.message = message
        self.status_code = status_code

    def __str__(self):
        return f"{self.service} API error: {self.message}"


class UploadTransportError(ExternalAPIError):
    """
    The upload request never produced a response code.

    Raised by the CRM client for connection errors, timeouts and
    other transport-level failures.
    """
    def __init__(self, message: str):
        super().__init__("CRM", message)
        self.args = (message,)


class RateLimitError(RetryableError):
    """Rate limit exceeded. Retry after the specified delay."""
    def __init__(self, service: str, retry_after: int = 60):
        super().__init__(service, retry_after)
        self.service = service
        self.retry_after = retry_after

    def __str__(self):
        return f"{self.service} rate limited. Retry after {self.retry_after}s"


class StateConflictError(RetryableError):
    """Export state kept changing underneath a compare-and-set update."""
    def __init__(self, data_type: str, attempts: int):
        super().__init__(data_type, attempts)
        self.data_type = data_type
        self.attempts = attempts

    def __str__(self):
        return (
            f"Export state for '{self.data_type}' changed concurrently, "
            f"gave up after {self.attempts} attempts"
        )


# ============================================
# NON-RETRYABLE ERRORS - No automatic retry
# ============================================
class NonRetryableError(CrmSyncException):
    """
    Base class for errors that should NOT trigger retry.

    - Unexpected CRM response codes
    - Malformed requests rejected by the CRM
    - Unknown data types or bad input
    """
    pass


class UnexpectedResponseError(NonRetryableError):
    """Single item upload came back with a code outside the accepted set."""
    def __init__(self, code: int, item_id=None):
        super().__init__(code, item_id)
        self.code = code
        self.item_id = item_id

    def __str__(self):
        return f"CRM upload failed: Unexpected response code '{self.code}'"


class ExportFailedError(NonRetryableError):
    """A batch export page ended in a terminal failure."""
    def __init__(self, data_type: str, reason: str):
        super().__init__(data_type, reason)
        self.data_type = data_type
        self.reason = reason

    def __str__(self):
        return f"{self.data_type} export failed: {self.reason}"


class UnknownDataTypeError(NonRetryableError):
    """Data type is not one of the synchronized entity categories."""
    def __init__(self, data_type: str):
        super().__init__(data_type)
        self.data_type = data_type

    def __str__(self):
        return f"Unknown data type '{self.data_type}'"


class ValidationError(NonRetryableError):
    """Invalid input data - retrying won't help."""
    pass
