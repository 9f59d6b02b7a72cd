"""
Client-side result store.

State changes only through `reduce` over a closed set of actions. The store
keeps the last good search response, separate map/list loading flags, the
last error and the diagnostics of the last applied response.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, Union

from api.errors import SearchError
from api.schemas import SearchFilters, SearchMeta, SearchResponse, Viewport

logger = logging.getLogger(__name__)


# ============================================================================
# Actions
# ============================================================================


@dataclass(frozen=True)
class ViewportChanged:
    viewport: Viewport


@dataclass(frozen=True)
class FiltersChanged:
    filters: SearchFilters


@dataclass(frozen=True)
class FilterUpdated:
    key: str
    value: Any


@dataclass(frozen=True)
class FiltersReset:
    pass


@dataclass(frozen=True)
class PageChanged:
    page: int


@dataclass(frozen=True)
class FetchStarted:
    request_seq: int


@dataclass(frozen=True)
class FetchSucceeded:
    request_seq: int
    result: SearchResponse


@dataclass(frozen=True)
class FetchFailed:
    request_seq: int
    error: SearchError


Action = Union[
    ViewportChanged,
    FiltersChanged,
    FilterUpdated,
    FiltersReset,
    PageChanged,
    FetchStarted,
    FetchSucceeded,
    FetchFailed,
]


# ============================================================================
# State
# ============================================================================


@dataclass(frozen=True)
class SearchState:
    """Snapshot of everything the map and list views render from."""

    viewport: Optional[Viewport] = None
    filters: SearchFilters = field(default_factory=SearchFilters)
    page: int = 1
    result: Optional[SearchResponse] = None
    is_map_loading: bool = False
    is_list_loading: bool = False
    error: Optional[SearchError] = None
    last_meta: Optional[SearchMeta] = None
    request_seq: int = 0

    @property
    def is_loading(self) -> bool:
        return self.is_map_loading or self.is_list_loading

    @property
    def has_active_filters(self) -> bool:
        return has_active_filters(self.filters)


def has_active_filters(filters: SearchFilters) -> bool:
    """True when any filter field carries a value."""
    return any(
        value is not None and value != ""
        for value in filters.model_dump().values()
    )


def reduce(state: SearchState, action: Action) -> SearchState:
    """Pure state transition. Fetch results for a stale request_seq are ignored."""
    if isinstance(action, ViewportChanged):
        return replace(state, viewport=action.viewport)

    if isinstance(action, FiltersChanged):
        return replace(state, filters=action.filters, page=1)

    if isinstance(action, FilterUpdated):
        filters = state.filters.model_copy(update={action.key: action.value})
        return replace(state, filters=filters, page=1)

    if isinstance(action, FiltersReset):
        return replace(state, filters=SearchFilters(), page=1)

    if isinstance(action, PageChanged):
        return replace(state, page=action.page)

    if isinstance(action, FetchStarted):
        return replace(
            state,
            request_seq=action.request_seq,
            is_map_loading=True,
            is_list_loading=True,
            error=None,
        )

    if isinstance(action, FetchSucceeded):
        if action.request_seq != state.request_seq:
            return state
        return replace(
            state,
            result=action.result,
            is_map_loading=False,
            is_list_loading=False,
            error=None,
            last_meta=action.result.meta,
        )

    if isinstance(action, FetchFailed):
        if action.request_seq != state.request_seq:
            return state
        # Keep the last good result: a failure never partially updates display state
        return replace(
            state,
            is_map_loading=False,
            is_list_loading=False,
            error=action.error,
        )

    raise TypeError(f"Unknown action: {action!r}")


class ResultStore:
    """Holds the current SearchState and notifies subscribers on change."""

    def __init__(self, state: Optional[SearchState] = None):
        self._state = state or SearchState()
        self._subscribers: List[Callable[[SearchState], None]] = []

    @property
    def state(self) -> SearchState:
        return self._state

    def dispatch(self, action: Action) -> SearchState:
        new_state = reduce(self._state, action)
        if new_state is not self._state:
            self._state = new_state
            for callback in list(self._subscribers):
                callback(new_state)
        return self._state

    def subscribe(self, callback: Callable[[SearchState], None]) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
