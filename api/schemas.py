"""
Pydantic schemas for search requests and responses.
"""

from datetime import datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Viewport / Filter Schemas
# ============================================================================


class Bounds(BaseModel):
    """Bounding rectangle of the visible map."""

    north: float
    south: float
    east: float
    west: float


class LatLng(BaseModel):
    """Map center."""

    lat: float
    lng: float


class Viewport(BaseModel):
    """Map viewport parameters. Bounds and zoom are validated by the search service."""

    bounds: Optional[Bounds] = None
    zoom: Optional[int] = None
    center: Optional[LatLng] = None


class SearchFilters(BaseModel):
    """Optional attribute predicates; a missing field means no constraint."""

    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_bedrooms: Optional[int] = None
    geohash: Optional[str] = None  # drill into a single cluster cell

    class Config:
        frozen = True


class SearchRequest(BaseModel):
    """Unified search request body."""

    bounds: Optional[Bounds] = None
    zoom: Optional[int] = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = 1
    limit: int = 20

    def to_viewport(self) -> Viewport:
        return Viewport(bounds=self.bounds, zoom=self.zoom)


# ============================================================================
# Map Schemas
# ============================================================================


class ClusterBounds(BaseModel):
    """Coordinate extrema of every listing in a cluster."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class MapCluster(BaseModel):
    """Aggregate of listings sharing a geohash prefix."""

    id: str  # the geohash prefix, or "unknown"
    lat: float
    lng: float
    count: int
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    bounds: ClusterBounds


class MapPoint(BaseModel):
    """Single listing marker."""

    id: int
    lat: float
    lng: float
    price: Optional[float] = None
    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    title: Optional[str] = None


class ListItem(BaseModel):
    """Listing card for the paginated list view."""

    id: int
    title: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    price: float
    listing_type: str
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    construction_m2: Optional[float] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Search Response
# ============================================================================


class SearchMeta(BaseModel):
    """Diagnostics attached to every search response."""

    request_id: str
    duration_ms: float
    db_query_ms: float
    clustering_precision: Optional[int] = None
    timestamp: datetime
    mode: str
    clusters_count: int = 0
    points_processed: int = 0


class SearchResponse(BaseModel):
    """Single consistent answer for both the map and the list."""

    mode: str  # "clusters" | "properties"
    map_data: List[Union[MapCluster, MapPoint]] = Field(
        default_factory=list, alias="mapData"
    )
    list_items: List[ListItem] = Field(default_factory=list, alias="listItems")
    total: int
    page: int
    total_pages: int = Field(alias="totalPages")
    meta: SearchMeta

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _parse_map_data(cls, data):
        """Parse map items as clusters or points according to the mode tag."""
        if not isinstance(data, dict):
            return data
        key = "mapData" if "mapData" in data else "map_data"
        items = data.get(key) or []
        model = MapCluster if data.get("mode") == "clusters" else MapPoint
        return {
            **data,
            key: [
                model.model_validate(item) if isinstance(item, dict) else item
                for item in items
            ],
        }

    @property
    def clusters(self) -> List[MapCluster]:
        return [item for item in self.map_data if isinstance(item, MapCluster)]

    @property
    def points(self) -> List[MapPoint]:
        return [item for item in self.map_data if isinstance(item, MapPoint)]
