"""
SQLAlchemy ORM model for searchable listings and listing parse helpers.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Listing status values; only active listings are ever searchable
STATUS_ACTIVE = "activa"
LISTING_TYPES = ("venta", "renta")

# Precisions with a precomputed geohash column on the listings table
GEOHASH_PRECISIONS = (3, 4, 5, 6, 7, 8)


# ============================================================================
# SQLAlchemy ORM Models
# ============================================================================


class ListingModel(Base):
    """SQLAlchemy model for a property listing with its map location."""

    __tablename__ = "listings"
    __table_args__ = (
        Index("idx_listings_lat_lng", "lat", "lng"),
        Index("idx_listings_status_type", "status", "listing_type"),
        Index("idx_listings_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    price = Column(Float, nullable=False)
    listing_type = Column(String, nullable=False)
    property_type = Column(String, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Float, nullable=True)
    construction_m2 = Column(Float, nullable=True)
    address = Column(String, nullable=True)
    neighborhood = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    status = Column(String, default=STATUS_ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Precomputed spatial index keys, one per supported precision
    geohash_3 = Column(String(3), nullable=True, index=True)
    geohash_4 = Column(String(4), nullable=True, index=True)
    geohash_5 = Column(String(5), nullable=True, index=True)
    geohash_6 = Column(String(6), nullable=True, index=True)
    geohash_7 = Column(String(7), nullable=True, index=True)
    geohash_8 = Column(String(8), nullable=True, index=True)


def geohash_column(precision: int):
    """Return the listings column holding the geohash key at a precision."""
    if precision not in GEOHASH_PRECISIONS:
        raise ValueError(f"Unsupported geohash precision: {precision}")
    return getattr(ListingModel, f"geohash_{precision}")


# ============================================================================
# Utility Functions
# ============================================================================


def normalize_listing_type(value: Optional[str]) -> Optional[str]:
    """Normalize listing type string for comparison."""
    if not value:
        return None
    normalized = " ".join(value.lower().strip().split())
    return normalized or None
