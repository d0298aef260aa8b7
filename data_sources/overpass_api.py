"""
Async Overpass API Client
Queries OpenStreetMap water bodies inside a bounding box and converts the
raw `out geom` elements into GeoJSON polygons
"""

import os
import aiohttp
from typing import Dict, List, Optional
from .cache import cached, CACHE_TTL
from .error_handling import ProviderError, safe_api_call, handle_api_timeout, raise_for_provider_status
from logging_config import get_logger, log_api_call

logger = get_logger(__name__)

# Build list of Overpass endpoints (primary + fallbacks)
_default_overpass = os.environ.get("OVERPASS_URL")
_fallback_endpoints = [
    endpoint for endpoint in [
        _default_overpass.strip() if _default_overpass else None,
        "https://overpass-api.de/api/interpreter",
        "https://overpass.kumi.systems/api/interpreter",
    ] if endpoint
]

# Deduplicate while preserving order
OVERPASS_URLS: List[str] = []
for endpoint in _fallback_endpoints:
    if endpoint not in OVERPASS_URLS:
        OVERPASS_URLS.append(endpoint)

USER_AGENT = os.getenv("TERRA_USER_AGENT", "Terra/1.0")

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=20, limit_per_host=5)
        timeout = aiohttp.ClientTimeout(total=45, connect=10)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def build_water_query(south: float, west: float, north: float, east: float) -> str:
    """Overpass QL selecting water areas and riverbanks inside the bbox."""
    bbox = f"{south},{west},{north},{east}"
    return (
        "[out:json][timeout:30];"
        "("
        f'nwr["natural"="water"]({bbox});'
        f'nwr["waterway"="riverbank"]({bbox});'
        ");"
        "out geom;"
    )


@cached(ttl_seconds=CACHE_TTL['water_features'])
@safe_api_call("overpass")
@handle_api_timeout(timeout_seconds=40)
async def query_water_features_async(south: float, west: float, north: float, east: float) -> Optional[Dict]:
    """
    Query Overpass for water polygons inside a bounding box.

    Returns:
        GeoJSON FeatureCollection (possibly with no features), or None if every
        endpoint failed
    """
    query = build_water_query(south, west, north, east)
    session = await get_session()
    last_error = None

    for url in OVERPASS_URLS:
        log_api_call(logger, "overpass", url, query_type="water_features")
        try:
            async with session.post(url, data={"data": query}) as resp:
                raise_for_provider_status("overpass", resp.status, getattr(resp, "reason", None))
                data = await resp.json(content_type=None)
        except (ProviderError, aiohttp.ClientError) as e:
            logger.warning(f"Overpass endpoint {url} failed: {e}")
            last_error = e
            continue

        if isinstance(data, dict) and data.get("type") == "FeatureCollection":
            return data
        return elements_to_feature_collection((data or {}).get("elements", []))

    raise ProviderError(f"All Overpass endpoints failed: {last_error}", "overpass")


def _ring_from_geometry(points: Optional[List[Dict]]) -> List[List[float]]:
    """Convert Overpass [{'lat','lon'}, ...] geometry into a GeoJSON [lon, lat] line."""
    ring = []
    for node in points or []:
        lat, lon = node.get("lat"), node.get("lon")
        if lat is None or lon is None:
            continue
        ring.append([lon, lat])
    return ring


def _is_closed(ring: List[List[float]]) -> bool:
    return len(ring) >= 4 and ring[0] == ring[-1]


def _stitch_rings(segments: List[List[List[float]]]) -> List[List[List[float]]]:
    """
    Join way segments end-to-end into closed rings.

    Relations often split one lake shore across several ways; segments may
    need reversing to line up. Segments that never close are dropped.
    """
    rings = []
    pending = [list(segment) for segment in segments if len(segment) >= 2]

    while pending:
        current = pending.pop(0)
        while current[0] != current[-1]:
            for index, segment in enumerate(pending):
                if segment[0] == current[-1]:
                    current = current + segment[1:]
                elif segment[-1] == current[-1]:
                    current = current + segment[-2::-1]
                elif segment[-1] == current[0]:
                    current = segment[:-1] + current
                elif segment[0] == current[0]:
                    current = segment[:0:-1] + current
                else:
                    continue
                pending.pop(index)
                break
            else:
                break

        if _is_closed(current):
            rings.append(current)

    return rings


def _point_in_ring(point: List[float], ring: List[List[float]]) -> bool:
    """Ray-casting point-in-polygon test on a [lon, lat] ring."""
    x, y = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def _relation_polygons(element: Dict) -> List[List[List[List[float]]]]:
    """Build [outer, *holes] polygons from a relation's member geometries."""
    outer_segments, inner_segments = [], []
    for member in element.get("members", []):
        if member.get("type") != "way":
            continue
        line = _ring_from_geometry(member.get("geometry"))
        if member.get("role") == "inner":
            inner_segments.append(line)
        else:
            outer_segments.append(line)

    polygons = [[outer] for outer in _stitch_rings(outer_segments)]
    for inner in _stitch_rings(inner_segments):
        for polygon in polygons:
            if _point_in_ring(inner[0], polygon[0]):
                polygon.append(inner)
                break
    return polygons


def _feature(element: Dict, geometry: Dict) -> Dict:
    return {
        "type": "Feature",
        "id": f"{element.get('type')}/{element.get('id')}",
        "properties": dict(element.get("tags") or {}),
        "geometry": geometry,
    }


def elements_to_feature_collection(elements: List[Dict]) -> Dict:
    """
    Convert raw Overpass elements (queried with `out geom`) into GeoJSON.

    Closed ways become Polygons, relations become Polygon/MultiPolygon from
    their stitched outer and inner member rings. Nodes and open ways are
    ignored because they carry no area.
    """
    features = []
    for element in elements or []:
        element_type = element.get("type")

        if element_type == "way":
            ring = _ring_from_geometry(element.get("geometry"))
            if _is_closed(ring):
                features.append(_feature(element, {"type": "Polygon", "coordinates": [ring]}))

        elif element_type == "relation":
            polygons = _relation_polygons(element)
            if len(polygons) == 1:
                features.append(_feature(element, {"type": "Polygon", "coordinates": polygons[0]}))
            elif polygons:
                features.append(_feature(element, {"type": "MultiPolygon", "coordinates": polygons}))

    return {"type": "FeatureCollection", "features": features}
