"""Tests for the client-side result store reducer."""

import pytest

from api.errors import UpstreamQueryError
from api.schemas import SearchFilters, Viewport
from search_client.store import (
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    FilterUpdated,
    FiltersChanged,
    FiltersReset,
    PageChanged,
    ResultStore,
    SearchState,
    ViewportChanged,
    has_active_filters,
    reduce,
)
from conftest import CDMX_BOUNDS, make_response


def test_filter_changes_reset_page():
    state = SearchState(page=4)

    assert reduce(state, FiltersChanged(SearchFilters(min_bedrooms=2))).page == 1
    assert reduce(state, FilterUpdated("listing_type", "venta")).page == 1
    assert reduce(state, FiltersReset()).page == 1


def test_viewport_change_keeps_page():
    viewport = Viewport(bounds=CDMX_BOUNDS, zoom=15)
    state = reduce(SearchState(page=3), ViewportChanged(viewport))

    assert state.viewport == viewport
    assert state.page == 3


def test_filter_updated_sets_single_field():
    state = SearchState(filters=SearchFilters(min_price=100))
    state = reduce(state, FilterUpdated("listing_type", "renta"))

    assert state.filters.listing_type == "renta"
    assert state.filters.min_price == 100


def test_fetch_lifecycle():
    state = reduce(SearchState(), FetchStarted(1))
    assert state.is_map_loading and state.is_list_loading
    assert state.is_loading

    result = make_response(total=7, page=2)
    state = reduce(state, FetchSucceeded(1, result))

    assert state.result is result
    # page belongs to user actions; the served page is on the result
    assert state.page == 1
    assert state.result.page == 2
    assert state.last_meta == result.meta
    assert not state.is_loading
    assert state.error is None


def test_failure_keeps_last_result():
    result = make_response()
    state = reduce(reduce(SearchState(), FetchStarted(1)), FetchSucceeded(1, result))

    error = UpstreamQueryError("connection lost", retryable=True)
    state = reduce(reduce(state, FetchStarted(2)), FetchFailed(2, error))

    assert state.result is result
    assert state.error is error
    assert not state.is_loading


def test_stale_responses_are_ignored():
    state = reduce(SearchState(), FetchStarted(1))
    state = reduce(state, FetchStarted(2))

    after_success = reduce(state, FetchSucceeded(1, make_response()))
    after_failure = reduce(state, FetchFailed(1, UpstreamQueryError("late")))

    assert after_success is state
    assert after_failure is state


def test_fetch_started_clears_error():
    state = SearchState(error=UpstreamQueryError("boom"))
    assert reduce(state, FetchStarted(5)).error is None


def test_unknown_action_rejected():
    with pytest.raises(TypeError):
        reduce(SearchState(), object())


def test_has_active_filters():
    assert not has_active_filters(SearchFilters())
    assert not has_active_filters(SearchFilters(listing_type=""))
    assert has_active_filters(SearchFilters(min_price=0))
    assert SearchState(filters=SearchFilters(geohash="9g3")).has_active_filters


def test_store_notifies_subscribers_on_change():
    store = ResultStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.dispatch(PageChanged(2))
    # Stale fetch result leaves the state untouched, no notification
    store.dispatch(FetchSucceeded(99, make_response()))
    unsubscribe()
    store.dispatch(PageChanged(3))

    assert [s.page for s in seen] == [2]
    assert store.state.page == 3
