"""
Client-side request orchestration for the unified search.

Viewport, filter and page changes are debounced into a single search call.
Each call gets its own CancellationToken; starting a new call cancels the
previous token, and a response for a cancelled token is dropped before it
reaches the store, even if it completed successfully.

All methods must be called from within a running asyncio event loop.
"""

import asyncio
import logging
from typing import Any, Optional, Set

from api.errors import (
    SearchCancelledError,
    SearchError,
    SearchValidationError,
    UpstreamQueryError,
)
from api.schemas import SearchFilters, SearchRequest, Viewport
from config import SEARCH_DEBOUNCE_MS, SEARCH_PAGE_SIZE
from search_client.store import (
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    FilterUpdated,
    FiltersChanged,
    FiltersReset,
    PageChanged,
    ResultStore,
    ViewportChanged,
)
from search_client.transport import CancellationToken, SearchTransport

logger = logging.getLogger(__name__)


class RequestOrchestrator:
    """
    Decides when the search service is called and which responses are applied.

    Args:
        transport: How requests reach the search service
        store: Result store updated by this orchestrator only
        debounce_ms: Quiescence period before a call fires
        limit: List page size sent with every request
    """

    def __init__(
        self,
        transport: SearchTransport,
        store: Optional[ResultStore] = None,
        debounce_ms: int = SEARCH_DEBOUNCE_MS,
        limit: int = SEARCH_PAGE_SIZE,
    ):
        self.transport = transport
        self.store = store or ResultStore()
        self.debounce_s = debounce_ms / 1000
        self.limit = limit
        self._timer: Optional[asyncio.TimerHandle] = None
        self._token: Optional[CancellationToken] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Triggering events
    # ------------------------------------------------------------------

    def set_viewport(self, viewport: Viewport):
        self.store.dispatch(ViewportChanged(viewport))
        self._schedule()

    def set_filters(self, filters: SearchFilters):
        self.store.dispatch(FiltersChanged(filters))
        self._schedule()

    def update_filter(self, key: str, value: Any):
        if key not in SearchFilters.model_fields:
            raise KeyError(f"Unknown filter: {key}")
        self.store.dispatch(FilterUpdated(key, value))
        self._schedule()

    def reset_filters(self):
        self.store.dispatch(FiltersReset())
        self._schedule()

    def set_page(self, page: int):
        self.store.dispatch(PageChanged(page))
        self._schedule()

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def flush(self) -> Optional[asyncio.Task]:
        """Fire the pending search now instead of waiting for quiescence."""
        self._cancel_timer()
        return self._fire()

    def retry(self) -> Optional[asyncio.Task]:
        """Re-issue the current request, e.g. after a transient failure."""
        return self.flush()

    async def wait_idle(self):
        """Wait until no debounce timer is pending and no call is in flight."""
        while self._timer is not None or self._tasks:
            if self._tasks:
                await asyncio.wait(set(self._tasks))
            else:
                await asyncio.sleep(self.debounce_s / 2)

    async def close(self):
        """Cancel pending work and release the transport."""
        self._cancel_timer()
        if self._token is not None:
            self._token.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.wait(set(self._tasks))
        await self.transport.aclose()

    def _schedule(self):
        # Reset, not extend: only the last event in a burst fires
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_s, self._fire)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> Optional[asyncio.Task]:
        self._timer = None
        state = self.store.state
        if state.viewport is None:
            return None

        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token

        request = SearchRequest(
            bounds=state.viewport.bounds,
            zoom=state.viewport.zoom,
            filters=state.filters,
            page=state.page,
            limit=self.limit,
        )
        self.store.dispatch(FetchStarted(token.seq))

        task = asyncio.ensure_future(self._run(request, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, request: SearchRequest, token: CancellationToken):
        try:
            result = await self.transport.search(request, token)
        except SearchCancelledError:
            logger.debug(f"Search request {token.seq} cancelled")
            return
        except SearchError as e:
            if token.cancelled:
                logger.debug(f"Dropping error for superseded request {token.seq}: {e}")
                return
            if isinstance(e, SearchValidationError):
                logger.error(
                    f"Search rejected request_id={e.request_id}: {e.message} "
                    f"(bounds={request.bounds}, zoom={request.zoom})"
                )
            else:
                logger.warning(
                    f"Search failed request_id={e.request_id} retryable={e.retryable}: {e}"
                )
            self.store.dispatch(FetchFailed(token.seq, e))
            return
        except Exception as e:
            if token.cancelled:
                logger.debug(f"Dropping error for superseded request {token.seq}: {e}")
                return
            logger.exception(f"Unexpected error in search request {token.seq}")
            error = UpstreamQueryError(f"search request failed: {e}")
            self.store.dispatch(FetchFailed(token.seq, error))
            return

        if token.cancelled:
            logger.debug(f"Discarding response for superseded request {token.seq}")
            return
        self.store.dispatch(FetchSucceeded(token.seq, result))
