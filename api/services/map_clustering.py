"""
Map clustering service for geographic data visualization.
"""

from typing import List, Dict, Any

from api.schemas import MapCluster, ClusterBounds

# Listings fed into clustering are capped to bound aggregation cost
CLUSTER_INPUT_CAP = 5000
# Clusters returned per response
MAX_CLUSTERS = 500

UNKNOWN_CLUSTER_ID = "unknown"


def cluster_by_geohash(
    points: List[Dict[str, Any]], max_clusters: int = MAX_CLUSTERS
) -> List[MapCluster]:
    """
    Group listings into clusters sharing a precomputed geohash prefix.

    Args:
        points: Listing dictionaries with lat, lng, price and the geohash key
            at the chosen precision under "geohash"
        max_clusters: Number of clusters to keep, largest first

    Returns:
        List of MapCluster objects sorted by descending count. Listings without
        a geohash key are aggregated into one "unknown" cluster.
    """
    if not points:
        return []

    buckets: Dict[str, List[Dict[str, Any]]] = {}

    for point in points:
        if point.get("lat") is None or point.get("lng") is None:
            continue
        key = point.get("geohash") or UNKNOWN_CLUSTER_ID
        if key not in buckets:
            buckets[key] = []
        buckets[key].append(point)

    clusters = []
    for key, members in buckets.items():
        lats = [p["lat"] for p in members]
        lngs = [p["lng"] for p in members]
        prices = [p["price"] for p in members if p.get("price") is not None]

        clusters.append(
            MapCluster(
                id=key,
                lat=sum(lats) / len(lats),
                lng=sum(lngs) / len(lngs),
                count=len(members),
                min_price=min(prices) if prices else None,
                max_price=max(prices) if prices else None,
                bounds=ClusterBounds(
                    north=max(lats),
                    south=min(lats),
                    east=max(lngs),
                    west=min(lngs),
                ),
            )
        )

    # Stable tie-break on id keeps repeated identical searches identical
    clusters.sort(key=lambda c: (-c.count, c.id))
    return clusters[:max_clusters]
