"""
Error taxonomy for the unified property search.
"""

from typing import Any, Dict, Optional


class SearchError(Exception):
    """Base class for search failures surfaced to callers."""

    retryable = False

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.duration_ms = duration_ms

    def to_detail(self) -> Dict[str, Any]:
        """Error body used by the HTTP layer to correlate with server logs."""
        return {
            "error": self.message,
            "type": type(self).__name__,
            "request_id": self.request_id,
            "duration_ms": self.duration_ms,
            "retryable": self.retryable,
        }


class SearchValidationError(SearchError):
    """Malformed or missing bounds/zoom, or non-positive page/limit."""


class UpstreamQueryError(SearchError):
    """One of the count, list or map queries failed."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        retryable: bool = False,
    ):
        super().__init__(message, request_id=request_id, duration_ms=duration_ms)
        self.retryable = retryable


class QueryTimeoutError(UpstreamQueryError):
    """A point store query exceeded its timeout."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        super().__init__(
            message, request_id=request_id, duration_ms=duration_ms, retryable=True
        )


class RateLimitedError(SearchError):
    """The search endpoint rejected the caller for exceeding its request budget."""

    retryable = True

    def __init__(
        self,
        message: str,
        retry_after_s: Optional[float] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, request_id=request_id)
        self.retry_after_s = retry_after_s


class SearchCancelledError(SearchError):
    """The request token was superseded before the response was applied."""
