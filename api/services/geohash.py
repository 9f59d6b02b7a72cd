"""
Geohash encoding for the precomputed spatial index keys on listings.
"""

from typing import Dict, Optional

from models import GEOHASH_PRECISIONS

GEOHASH_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"


def encode_geohash(lat: float, lng: float, precision: int) -> str:
    """
    Encode a coordinate as a base-32 geohash.

    Args:
        lat: Latitude in [-90, 90]
        lng: Longitude in [-180, 180]
        precision: Number of characters in the resulting hash

    Returns:
        Geohash string of the requested length
    """
    if precision < 1:
        raise ValueError("precision must be >= 1")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise ValueError(f"Coordinate out of range: ({lat}, {lng})")

    lat_range = [-90.0, 90.0]
    lng_range = [-180.0, 180.0]
    chars = []
    bits = 0
    bit_count = 0
    even = True  # even bits encode longitude

    while len(chars) < precision:
        if even:
            mid = (lng_range[0] + lng_range[1]) / 2
            if lng >= mid:
                bits = (bits << 1) | 1
                lng_range[0] = mid
            else:
                bits = bits << 1
                lng_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                bits = (bits << 1) | 1
                lat_range[0] = mid
            else:
                bits = bits << 1
                lat_range[1] = mid
        even = not even
        bit_count += 1

        if bit_count == 5:
            chars.append(GEOHASH_ALPHABET[bits])
            bits = 0
            bit_count = 0

    return "".join(chars)


def geohash_keys(lat: Optional[float], lng: Optional[float]) -> Dict[str, Optional[str]]:
    """Column values for every stored geohash precision (all None without coordinates)."""
    if lat is None or lng is None:
        return {f"geohash_{p}": None for p in GEOHASH_PRECISIONS}
    full = encode_geohash(lat, lng, max(GEOHASH_PRECISIONS))
    return {f"geohash_{p}": full[:p] for p in GEOHASH_PRECISIONS}


def is_valid_geohash(value: str) -> bool:
    """Check that a string only uses the geohash alphabet."""
    return bool(value) and all(c in GEOHASH_ALPHABET for c in value)
