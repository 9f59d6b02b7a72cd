"""
Unified property search.

One call answers both the map and the list from the same filtered dataset:

1. Validate the viewport and paging input before any query runs
2. Build the shared predicate and pick the mode from zoom alone
3. Fan out count, list page and map dataset queries concurrently
4. Cluster the map dataset when in cluster mode
5. Assemble one response whose total comes from the exact count query

Any query failure fails the whole search; there is no partial response.
"""

import asyncio
import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from api.errors import SearchValidationError, UpstreamQueryError
from api.schemas import (
    Bounds,
    MapPoint,
    SearchFilters,
    SearchMeta,
    SearchResponse,
    Viewport,
)
from api.services.geohash import is_valid_geohash
from api.services.map_clustering import CLUSTER_INPUT_CAP, cluster_by_geohash
from api.services.mode_selector import ClustersMode, clustering_precision, select_mode
from api.services.point_store import PointStore
from api.services.retry import RetryConfig, retry_with_backoff
from api.services.spatial_filter import build_search_predicate
from models import GEOHASH_PRECISIONS

logger = logging.getLogger(__name__)

# Markers returned directly in properties mode
PROPERTIES_MAP_CAP = 500

MIN_ZOOM = 0
MAX_ZOOM = 22
MAX_PAGE = 1000
MAX_PAGE_SIZE = 100


def total_pages_for(total: int, limit: int) -> int:
    """ceil(total / limit); zero results means zero pages."""
    return math.ceil(total / limit) if total > 0 else 0


def validate_search_input(
    viewport: Optional[Viewport], filters: SearchFilters, page: int, limit: int
) -> Tuple[Bounds, int, int, int]:
    """
    Reject malformed input before any query executes.

    Returns:
        (bounds, zoom, page, limit) with page and limit clamped to their caps

    Raises:
        SearchValidationError: missing/invalid bounds or zoom, non-positive
            page or limit, or a malformed geohash filter
    """
    if viewport is None or viewport.bounds is None or viewport.zoom is None:
        raise SearchValidationError("bounds and zoom required")

    bounds = viewport.bounds
    coords = (bounds.north, bounds.south, bounds.east, bounds.west)
    if not all(math.isfinite(c) for c in coords):
        raise SearchValidationError("Invalid coordinates")
    if not (-90 <= bounds.south <= 90 and -90 <= bounds.north <= 90):
        raise SearchValidationError("Invalid coordinates")
    if not (-180 <= bounds.west <= 180 and -180 <= bounds.east <= 180):
        raise SearchValidationError("Invalid coordinates")
    if bounds.north <= bounds.south or bounds.east <= bounds.west:
        raise SearchValidationError(
            "Invalid bounds: north must exceed south and east must exceed west"
        )

    zoom = viewport.zoom
    if zoom < MIN_ZOOM or zoom > MAX_ZOOM:
        raise SearchValidationError("Invalid zoom level")

    if page < 1:
        raise SearchValidationError("page must be >= 1")
    if limit < 1:
        raise SearchValidationError("limit must be >= 1")

    if filters.geohash is not None:
        length = len(filters.geohash)
        if length not in GEOHASH_PRECISIONS or not is_valid_geohash(
            filters.geohash.lower()
        ):
            raise SearchValidationError(f"Invalid geohash filter: {filters.geohash!r}")

    return bounds, zoom, min(page, MAX_PAGE), min(limit, MAX_PAGE_SIZE)


class SearchService:
    """Orchestrates the count, list and map queries behind one search call."""

    def __init__(self, store: PointStore, retry_config: Optional[RetryConfig] = None):
        self.store = store
        self.retry_config = retry_config or RetryConfig()

    async def search(
        self,
        viewport: Optional[Viewport],
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        limit: int = 20,
        request_id: Optional[str] = None,
    ) -> SearchResponse:
        """
        Search listings in a viewport for both the map and the list view.

        Args:
            viewport: Bounds and zoom of the visible map
            filters: Optional attribute filters
            page: 1-based list page
            limit: List page size
            request_id: Correlation id (generated when omitted)

        Returns:
            SearchResponse with mode, map data, list items, exact total and
            diagnostics

        Raises:
            SearchValidationError: input rejected, no query executed
            UpstreamQueryError: a query failed (QueryTimeoutError once the
                retry budget is exhausted)
        """
        request_id = request_id or str(uuid.uuid4())
        filters = filters or SearchFilters()
        start = time.perf_counter()

        try:
            bounds, zoom, page, limit = validate_search_input(
                viewport, filters, page, limit
            )
        except SearchValidationError as e:
            e.request_id = request_id
            e.duration_ms = _elapsed_ms(start)
            logger.error(f"Rejected search request_id={request_id}: {e.message}")
            raise

        predicate = build_search_predicate(bounds, filters)
        mode = select_mode(zoom)
        precision = clustering_precision(mode)
        map_limit = (
            CLUSTER_INPUT_CAP if isinstance(mode, ClustersMode) else PROPERTIES_MAP_CAP
        )

        query_start = time.perf_counter()
        try:
            total, list_items, raw_points = await _fan_out(
                self._with_retry(lambda: self.store.count(predicate), "count"),
                self._with_retry(
                    lambda: self.store.fetch_page(predicate, page, limit), "list"
                ),
                self._with_retry(
                    lambda: self.store.fetch_points(predicate, map_limit, precision),
                    "map",
                ),
            )
        except UpstreamQueryError as e:
            e.request_id = request_id
            e.duration_ms = _elapsed_ms(start)
            logger.error(
                f"Search failed request_id={request_id} duration_ms={e.duration_ms:.1f}: {e}"
            )
            raise
        db_query_ms = _elapsed_ms(query_start)

        if isinstance(mode, ClustersMode):
            map_data: List[Any] = cluster_by_geohash(raw_points)
        else:
            map_data = [MapPoint(**point) for point in raw_points]

        duration_ms = _elapsed_ms(start)
        meta = SearchMeta(
            request_id=request_id,
            duration_ms=round(duration_ms, 2),
            db_query_ms=round(db_query_ms, 2),
            clustering_precision=precision,
            timestamp=datetime.now(timezone.utc),
            mode=mode.name,
            clusters_count=len(map_data) if isinstance(mode, ClustersMode) else 0,
            points_processed=len(raw_points),
        )
        logger.info(
            "search request_id=%s mode=%s precision=%s total=%d page=%d "
            "duration_ms=%.2f db_query_ms=%.2f",
            request_id,
            mode.name,
            precision,
            total,
            page,
            duration_ms,
            db_query_ms,
        )

        return SearchResponse(
            mode=mode.name,
            map_data=map_data,
            list_items=list_items,
            total=total,
            page=page,
            total_pages=total_pages_for(total, limit),
            meta=meta,
        )

    def _with_retry(
        self, operation: Callable[[], Awaitable[Any]], label: str
    ) -> Awaitable[Any]:
        return retry_with_backoff(operation, self.retry_config, label=label)


async def _fan_out(*operations: Awaitable[Any]) -> List[Any]:
    """Run operations concurrently; the first failure cancels the rest."""
    tasks = [asyncio.ensure_future(op) for op in operations]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
