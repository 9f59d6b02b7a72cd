"""Tests for geohash key computation and backfill."""

import pytest

from api.services.geohash import encode_geohash, geohash_keys, is_valid_geohash
from database import ListingRepository
from scripts.backfill_geohash import run_backfill
from conftest import insert_listings


def test_encode_known_value():
    assert encode_geohash(57.64911, 10.40744, 11) == "u4pruydqqvj"


def test_encode_mexico_city_prefix():
    assert encode_geohash(19.4326, -99.1332, 3) == "9g3"


def test_encode_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_geohash(91.0, 0.0, 5)
    with pytest.raises(ValueError):
        encode_geohash(0.0, 0.0, 0)


def test_keys_are_prefixes_of_each_other():
    keys = geohash_keys(20.6597, -103.3496)
    assert set(keys) == {f"geohash_{p}" for p in range(3, 9)}
    for p in range(3, 8):
        assert keys[f"geohash_{p + 1}"].startswith(keys[f"geohash_{p}"])


def test_keys_without_coordinates_are_empty():
    assert all(v is None for v in geohash_keys(None, -99.0).values())


def test_is_valid_geohash():
    assert is_valid_geohash("9g3")
    assert not is_valid_geohash("9ga")  # 'a' is not in the alphabet
    assert not is_valid_geohash("")


def test_add_listing_derives_keys(test_db):
    session = test_db.get_session()
    try:
        listing = ListingRepository(session).add_listing(
            title="Casa", lat=19.4326, lng=-99.1332, price=1.0, listing_type="venta"
        )
        assert listing.geohash_3 == "9g3"
        assert len(listing.geohash_8) == 8
        assert listing.status == "activa"
    finally:
        session.close()


def test_backfill_fills_missing_keys(test_db):
    rows = [
        dict(
            title=f"Casa {i}",
            lat=19.43 + i * 0.01,
            lng=-99.13,
            price=1_000_000.0,
            listing_type="venta",
            **{f"geohash_{p}": None for p in range(3, 9)},
        )
        for i in range(5)
    ]
    insert_listings(test_db, rows)

    session = test_db.get_session()
    try:
        assert ListingRepository(session).geohash_backfill_progress()["pending"] == 5
    finally:
        session.close()

    assert run_backfill(test_db, batch_size=2) == 5

    session = test_db.get_session()
    try:
        progress = ListingRepository(session).geohash_backfill_progress()
    finally:
        session.close()
    assert progress == {"pending": 0, "completed": 5, "total": 5}
