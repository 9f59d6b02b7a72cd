"""
Representation mode selection from zoom level.
"""

from dataclasses import dataclass
from typing import Optional, Union

# Zoom >= 14 shows individual listings
ZOOM_THRESHOLD = 14

MODE_CLUSTERS = "clusters"
MODE_PROPERTIES = "properties"


@dataclass(frozen=True)
class ClustersMode:
    """Aggregate listings into geohash cells at `precision` characters."""

    precision: int
    name: str = MODE_CLUSTERS


@dataclass(frozen=True)
class PropertiesMode:
    """Show individual listing markers."""

    name: str = MODE_PROPERTIES


SearchMode = Union[ClustersMode, PropertiesMode]


def get_geohash_precision(zoom: int) -> int:
    """Geohash precision for a zoom level: coarser cells when zoomed out."""
    if zoom <= 6:
        return 3  # ~156km cells
    elif zoom <= 9:
        return 4  # ~39km cells
    elif zoom <= 12:
        return 5  # ~5km cells
    elif zoom <= 14:
        return 6  # ~1.2km cells
    else:
        return 7  # ~150m cells


def select_mode(zoom: int) -> SearchMode:
    """Representation for a zoom level. Depends on nothing but zoom."""
    if zoom >= ZOOM_THRESHOLD:
        return PropertiesMode()
    return ClustersMode(precision=get_geohash_precision(zoom))


def clustering_precision(mode: SearchMode) -> Optional[int]:
    if isinstance(mode, ClustersMode):
        return mode.precision
    return None
