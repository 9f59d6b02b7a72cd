"""
Search transports used by the request orchestrator.

Every transport call carries a CancellationToken. Cancelling the token stops
the in-flight call cooperatively and raises SearchCancelledError.
"""

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Dict, Optional

import httpx

from api.errors import (
    QueryTimeoutError,
    RateLimitedError,
    SearchCancelledError,
    SearchValidationError,
    UpstreamQueryError,
)
from api.schemas import SearchRequest, SearchResponse
from api.services.search_service import SearchService

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/search"

_token_seq = itertools.count(1)


class CancellationToken:
    """Cooperative cancellation flag that can also be awaited."""

    def __init__(self):
        self.seq = next(_token_seq)
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self):
        await self._event.wait()

    def raise_if_cancelled(self):
        if self.cancelled:
            raise SearchCancelledError(f"request {self.seq} was superseded")


async def run_cancellable(operation: Awaitable[Any], token: CancellationToken) -> Any:
    """Await `operation` unless the token is cancelled first."""
    token.raise_if_cancelled()
    task = asyncio.ensure_future(operation)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()
    logger.debug(f"Abandoned in-flight request {token.seq}")
    raise SearchCancelledError(f"request {token.seq} was superseded")


class SearchTransport:
    """Base class for ways of reaching the search service."""

    async def search(
        self, request: SearchRequest, token: CancellationToken
    ) -> SearchResponse:
        raise NotImplementedError

    async def aclose(self):
        pass


class LocalSearchTransport(SearchTransport):
    """Calls a SearchService in the same process."""

    def __init__(self, service: SearchService):
        self.service = service

    async def search(
        self, request: SearchRequest, token: CancellationToken
    ) -> SearchResponse:
        return await run_cancellable(
            self.service.search(
                request.to_viewport(),
                request.filters,
                page=request.page,
                limit=request.limit,
            ),
            token,
        )


class HttpSearchTransport(SearchTransport):
    """
    Calls the search endpoint over HTTP.

    Args:
        base_url: API root, e.g. "http://localhost:8080"
        timeout_s: Per-request timeout
        client: Optional preconfigured httpx.AsyncClient (owned by the caller)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)

    async def search(
        self, request: SearchRequest, token: CancellationToken
    ) -> SearchResponse:
        return await run_cancellable(self._post(request), token)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, request: SearchRequest) -> SearchResponse:
        try:
            response = await self._client.post(
                SEARCH_PATH, json=request.model_dump(mode="json")
            )
        except httpx.TimeoutException as e:
            raise QueryTimeoutError(f"search request timed out: {e}") from e
        except httpx.TransportError as e:
            raise UpstreamQueryError(
                f"search request failed: {e}", retryable=True
            ) from e

        if response.status_code == 200:
            try:
                return SearchResponse.model_validate(response.json())
            except ValueError as e:
                # Covers malformed JSON and pydantic ValidationError
                raise UpstreamQueryError(f"invalid search response: {e}") from e

        detail = _error_detail(response)
        message = detail.get("error") or f"HTTP {response.status_code}"
        request_id = detail.get("request_id") or response.headers.get("X-Request-ID")
        duration_ms = detail.get("duration_ms")

        if response.status_code in (400, 422):
            raise SearchValidationError(
                message, request_id=request_id, duration_ms=duration_ms
            )
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                message,
                retry_after_s=float(retry_after) if retry_after else None,
                request_id=request_id,
            )
        if response.status_code == 504:
            raise QueryTimeoutError(
                message, request_id=request_id, duration_ms=duration_ms
            )
        raise UpstreamQueryError(
            message,
            request_id=request_id,
            duration_ms=duration_ms,
            retryable=bool(detail.get("retryable", response.status_code >= 500)),
        )


def _error_detail(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return detail
    if isinstance(detail, str):
        return {"error": detail}
    return {}
