"""
Shared search predicate for the count, list and map queries.

`build_search_predicate` is the only place filter logic lives. Every query
against the listings table applies the same predicate via
`SearchPredicate.apply`, which keeps total, list and map consistent.
"""

from dataclasses import dataclass
from typing import Tuple

from sqlalchemy.orm import Query
from sqlalchemy.sql.elements import ColumnElement

from api.schemas import Bounds, SearchFilters
from models import ListingModel, STATUS_ACTIVE, geohash_column, normalize_listing_type


@dataclass(frozen=True)
class SearchPredicate:
    """Immutable rectangle + attribute predicate over the listings table."""

    bounds: Bounds
    filters: SearchFilters
    clauses: Tuple[ColumnElement, ...]

    def apply(self, query: Query) -> Query:
        """Restrict any listings query to this predicate."""
        return query.filter(*self.clauses)


def build_search_predicate(bounds: Bounds, filters: SearchFilters) -> SearchPredicate:
    """
    Build the predicate for listings within a viewport with optional filters.

    Args:
        bounds: Validated viewport rectangle (north > south, east > west)
        filters: Optional listing_type, property_type, price range,
            minimum bedrooms and geohash cell

    Returns:
        SearchPredicate shared by the count, list and map queries
    """
    # Base predicate: active listings with coordinates inside the viewport
    clauses = [
        ListingModel.status == STATUS_ACTIVE,
        ListingModel.lat.isnot(None),
        ListingModel.lng.isnot(None),
        ListingModel.lat >= bounds.south,
        ListingModel.lat <= bounds.north,
        ListingModel.lng >= bounds.west,
        ListingModel.lng <= bounds.east,
    ]

    listing_type = normalize_listing_type(filters.listing_type)
    if listing_type:
        clauses.append(ListingModel.listing_type == listing_type)

    if filters.property_type:
        clauses.append(ListingModel.property_type == filters.property_type)

    # Contradictory ranges (min > max) simply match nothing
    if filters.min_price is not None:
        clauses.append(ListingModel.price >= filters.min_price)
    if filters.max_price is not None:
        clauses.append(ListingModel.price <= filters.max_price)

    if filters.min_bedrooms is not None:
        clauses.append(ListingModel.bedrooms >= filters.min_bedrooms)

    # Drill-down into a cluster cell uses the column matching the prefix length
    if filters.geohash:
        prefix = filters.geohash.lower()
        clauses.append(geohash_column(len(prefix)) == prefix)

    return SearchPredicate(bounds=bounds, filters=filters, clauses=tuple(clauses))
