"""Pytest fixtures for backend tests."""

import asyncio
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

# Ensure project root is on path
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

# Keep the app-level database created by main.py out of the project tree
os.environ.setdefault(
    "DB_PATH", str(Path(tempfile.gettempdir()) / "property_search_test_app.db")
)

from config import set_db_instance
from database import Database, ListingRepository
from api.rate_limit import search_rate_limiter
from api.schemas import Bounds, SearchFilters, SearchMeta, SearchResponse, Viewport
from api.services.point_store import PointStore
from api.services.retry import RetryConfig
from api.services.search_service import SearchService


# Whole-country and single-neighborhood viewports
COUNTRY_BOUNDS = Bounds(north=33.0, south=14.0, east=-86.0, west=-118.0)
CDMX_BOUNDS = Bounds(north=19.45, south=19.42, east=-99.12, west=-99.14)

CITIES = {
    "Ciudad de México": (19.4326, -99.1332),
    "Guadalajara": (20.6597, -103.3496),
    "Monterrey": (25.6866, -100.3161),
}
LISTINGS_PER_CITY = 12
BASE_CREATED_AT = datetime(2026, 1, 1, 12, 0, 0)


def build_seed_listings():
    """36 active listings across three cities, plus inactive and keyless ones in CDMX."""
    rows = []
    i = 0
    for city, (lat, lng) in CITIES.items():
        for n in range(LISTINGS_PER_CITY):
            rows.append(
                dict(
                    title=f"{city} #{n}",
                    lat=lat + (n % 4) * 0.002,
                    lng=lng + (n // 4) * 0.002,
                    price=1_000_000 + n * 250_000,
                    listing_type="venta" if n % 3 else "renta",
                    property_type="casa" if n % 2 else "departamento",
                    bedrooms=1 + n % 4,
                    bathrooms=1 + n % 2,
                    construction_m2=80 + n * 10,
                    neighborhood="Centro",
                    city=city,
                    state=city,
                    created_at=BASE_CREATED_AT + timedelta(hours=i),
                )
            )
            i += 1

    # Sold listings never appear in results
    for n in range(2):
        rows.append(
            dict(
                title=f"Vendida #{n}",
                lat=19.4330,
                lng=-99.1330,
                price=3_000_000,
                listing_type="venta",
                property_type="casa",
                bedrooms=3,
                status="vendida",
                city="Ciudad de México",
                created_at=BASE_CREATED_AT + timedelta(hours=i),
            )
        )
        i += 1

    # Active listings whose geohash keys were never backfilled
    for n, listing_type in enumerate(("venta", "renta")):
        row = dict(
            title=f"Sin geohash #{n}",
            lat=19.4400,
            lng=-99.1300,
            price=2_000_000,
            listing_type=listing_type,
            property_type="casa",
            bedrooms=2,
            city="Ciudad de México",
            created_at=BASE_CREATED_AT + timedelta(hours=i),
        )
        row.update({f"geohash_{p}": None for p in (3, 4, 5, 6, 7, 8)})
        rows.append(row)
        i += 1
    return rows


ACTIVE_LISTINGS = len(CITIES) * LISTINGS_PER_CITY + 2


def insert_listings(db: Database, rows):
    session = db.get_session()
    try:
        repo = ListingRepository(session)
        for row in rows:
            repo.add_listing(**row)
        session.commit()
    finally:
        session.close()


def make_response(total=3, page=1, request_id="req"):
    """A properties-mode response without map or list data."""
    return SearchResponse(
        mode="properties",
        map_data=[],
        list_items=[],
        total=total,
        page=page,
        total_pages=1 if total else 0,
        meta=SearchMeta(
            request_id=request_id,
            duration_ms=1.0,
            db_query_ms=0.5,
            timestamp=datetime.now(timezone.utc),
            mode="properties",
        ),
    )


def run_search(service: SearchService, bounds=None, zoom=None, filters=None, **kwargs):
    """Run a search synchronously."""
    viewport = Viewport(bounds=bounds, zoom=zoom)
    return asyncio.run(
        service.search(viewport, filters or SearchFilters(), **kwargs)
    )


@pytest.fixture
def test_db(tmp_path):
    """Create a file-backed SQLite database for tests (shared by worker threads)."""
    db = Database(db_path=str(tmp_path / "test.db"))
    db.create_tables()
    set_db_instance(db)
    yield db
    db.close()


@pytest.fixture
def seeded_db(test_db):
    insert_listings(test_db, build_seed_listings())
    return test_db


@pytest.fixture
def search_service(seeded_db):
    return SearchService(
        PointStore(seeded_db), RetryConfig(max_attempts=2, base_delay_s=0.0)
    )


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    search_rate_limiter.reset()
    yield
    search_rate_limiter.reset()


@pytest.fixture
def app(seeded_db):
    """Create FastAPI app with test database. Patch set_db_instance so main does not overwrite."""
    with patch("config.set_db_instance", lambda x: None):
        from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client for the FastAPI app."""
    from fastapi.testclient import TestClient
    return TestClient(app)
