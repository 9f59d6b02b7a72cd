"""Tests for the shared search predicate."""

import pytest

from api.schemas import SearchFilters
from api.services.spatial_filter import build_search_predicate
from models import ListingModel
from conftest import CDMX_BOUNDS, COUNTRY_BOUNDS, insert_listings


def _matching_ids(db, bounds, filters):
    predicate = build_search_predicate(bounds, filters)
    session = db.get_session()
    try:
        return {row.id for row in predicate.apply(session.query(ListingModel)).all()}
    finally:
        session.close()


def test_predicate_does_not_mutate_inputs():
    filters = SearchFilters(listing_type="Venta", geohash="9G3")
    predicate = build_search_predicate(CDMX_BOUNDS, filters)

    assert predicate.filters is filters
    assert filters.listing_type == "Venta"
    assert filters.geohash == "9G3"
    assert isinstance(predicate.clauses, tuple)


def test_empty_filters_only_restrict_status_and_bounds():
    predicate = build_search_predicate(CDMX_BOUNDS, SearchFilters())
    # status, two non-null coordinate checks, four rectangle edges
    assert len(predicate.clauses) == 7


def test_every_filter_adds_a_clause():
    filters = SearchFilters(
        listing_type="renta",
        property_type="casa",
        min_price=1,
        max_price=2,
        min_bedrooms=3,
        geohash="9g3",
    )
    assert len(build_search_predicate(CDMX_BOUNDS, filters).clauses) == 13


def test_zero_valued_filters_still_apply():
    filters = SearchFilters(min_price=0, max_price=0)
    assert len(build_search_predicate(CDMX_BOUNDS, filters).clauses) == 9


def test_geohash_prefix_is_case_insensitive(seeded_db):
    lower = _matching_ids(seeded_db, COUNTRY_BOUNDS, SearchFilters(geohash="9g3"))
    upper = _matching_ids(seeded_db, COUNTRY_BOUNDS, SearchFilters(geohash="9G3"))
    assert lower == upper
    assert len(lower) == 12


def test_predicate_applies_to_any_listings_query(seeded_db):
    filters = SearchFilters(listing_type="renta")
    ids = _matching_ids(seeded_db, CDMX_BOUNDS, filters)

    session = seeded_db.get_session()
    try:
        rows = session.query(ListingModel).filter(ListingModel.id.in_(ids)).all()
    finally:
        session.close()

    assert len(rows) == 5  # n in (0, 3, 6, 9) plus one listing without keys
    assert all(row.listing_type == "renta" for row in rows)
    assert all(row.status == "activa" for row in rows)
    assert all(CDMX_BOUNDS.south <= row.lat <= CDMX_BOUNDS.north for row in rows)


@pytest.mark.parametrize("edge", ["north", "south", "east", "west"])
def test_points_on_the_boundary_are_included(test_db, edge):
    lat = {"north": CDMX_BOUNDS.north, "south": CDMX_BOUNDS.south}.get(edge, 19.43)
    lng = {"east": CDMX_BOUNDS.east, "west": CDMX_BOUNDS.west}.get(edge, -99.13)
    insert_listings(
        test_db,
        [dict(title="Borde", lat=lat, lng=lng, price=1.0, listing_type="venta")],
    )

    assert len(_matching_ids(test_db, CDMX_BOUNDS, SearchFilters())) == 1
