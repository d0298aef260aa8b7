"""
Geometry sanitization
Reduces arbitrary geocoding responses to area-bearing GeoJSON and converts
the providers' differing bounding-box orders into (south, west, north, east).

Everything here is total: malformed input yields None, never an exception,
and inputs are never mutated.
"""

from typing import Any, Dict, List, Optional

from regions.models import BoundingBox

POLYGON_TYPES = ("Polygon", "MultiPolygon")

# Address fields tried in order when naming a resolved region
ADDRESS_NAME_PRIORITY = (
    "city",
    "town",
    "village",
    "municipality",
    "county",
    "state",
    "country",
)

# Outer ring covering the whole map, used by the outside mask
WORLD_OUTLINE = [[-180, -90], [180, -90], [180, 90], [-180, 90], [-180, -90]]


def _is_position(position: Any) -> bool:
    return (
        isinstance(position, (list, tuple))
        and len(position) >= 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in position[:2])
    )


def _is_polygon_rings(rings: Any) -> bool:
    # Polygon coordinates: a non-empty list of non-empty rings of positions
    if not isinstance(rings, list) or not rings:
        return False
    return all(
        isinstance(ring, list) and ring and all(_is_position(p) for p in ring)
        for ring in rings
    )


def _has_valid_coordinates(geometry: Dict) -> bool:
    coordinates = geometry.get("coordinates")
    if geometry.get("type") == "Polygon":
        return _is_polygon_rings(coordinates)
    return (
        isinstance(coordinates, list)
        and bool(coordinates)
        and all(_is_polygon_rings(polygon) for polygon in coordinates)
    )


def _is_polygon_feature(feature: Any) -> bool:
    if not isinstance(feature, dict):
        return False
    geometry = feature.get("geometry")
    return (
        isinstance(geometry, dict)
        and geometry.get("type") in POLYGON_TYPES
        and _has_valid_coordinates(geometry)
    )


def sanitize_feature_collection(data: Any) -> Optional[Dict]:
    """
    Keep only Polygon/MultiPolygon features.

    Args:
        data: A GeoJSON Feature, FeatureCollection, or anything else

    Returns:
        A new FeatureCollection with only area features, or None if there are none
    """
    if not isinstance(data, dict):
        return None

    if data.get("type") == "FeatureCollection":
        features = data.get("features")
        if not isinstance(features, list):
            return None
        polygon_features = [feature for feature in features if _is_polygon_feature(feature)]
        if not polygon_features:
            return None
        return {"type": "FeatureCollection", "features": polygon_features}

    if data.get("type") == "Feature" and _is_polygon_feature(data):
        return {"type": "FeatureCollection", "features": [data]}

    return None


def build_bounds_feature_collection(bounds: BoundingBox, properties: Optional[Dict] = None) -> Dict:
    """
    Synthesize a rectangle polygon from a (south, west, north, east) box.

    The ring is closed: [[W,S],[E,S],[E,N],[W,N],[W,S]].
    """
    south, west, north, east = bounds
    ring = [
        [west, south],
        [east, south],
        [east, north],
        [west, north],
        [west, south],
    ]
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": dict(properties or {}),
                "geometry": {"type": "Polygon", "coordinates": [ring]},
            }
        ],
    }


def _parse_numeric_bbox(raw: Any) -> Optional[List[float]]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 4:
        return None
    try:
        values = [float(value) for value in raw]
    except (TypeError, ValueError):
        return None
    if any(value != value for value in values):  # NaN
        return None
    return values


def bbox_from_geojson(raw: Any) -> Optional[BoundingBox]:
    """GeoJSON [minLon, minLat, maxLon, maxLat] -> (south, west, north, east)."""
    values = _parse_numeric_bbox(raw)
    if values is None:
        return None
    min_lon, min_lat, max_lon, max_lat = values
    return (min_lat, min_lon, max_lat, max_lon)


def bbox_from_nominatim(raw: Any) -> Optional[BoundingBox]:
    """Nominatim [south, north, west, east] (often strings) -> (south, west, north, east)."""
    values = _parse_numeric_bbox(raw)
    if values is None:
        return None
    south, north, west, east = values
    return (south, west, north, east)


def extract_bounds(data: Any) -> Optional[BoundingBox]:
    """
    Find a bounding box anywhere a geocoding response may carry one.

    Search order: top-level `bbox`, top-level `boundingbox`, then each feature
    of a collection, then a feature's own `bbox` and `properties.boundingbox`.
    """
    if isinstance(data, list):
        for item in data:
            bounds = extract_bounds(item)
            if bounds:
                return bounds
        return None

    if not isinstance(data, dict):
        return None

    if "bbox" in data:
        bounds = bbox_from_geojson(data["bbox"])
        if bounds:
            return bounds

    if "boundingbox" in data:
        bounds = bbox_from_nominatim(data["boundingbox"])
        if bounds:
            return bounds

    if data.get("type") == "FeatureCollection" and isinstance(data.get("features"), list):
        for feature in data["features"]:
            bounds = extract_bounds(feature)
            if bounds:
                return bounds

    if data.get("type") == "Feature":
        properties = data.get("properties")
        if isinstance(properties, dict) and "boundingbox" in properties:
            bounds = bbox_from_nominatim(properties["boundingbox"])
            if bounds:
                return bounds

    return None


def address_name_candidates(place: Dict) -> List[str]:
    """All usable names for a place, most specific first."""
    candidates = []
    address = place.get("address")
    if isinstance(address, dict):
        for field in ADDRESS_NAME_PRIORITY:
            value = address.get(field)
            if isinstance(value, str) and value.strip():
                candidates.append(value)
    for field in ("display_name", "name"):
        value = place.get(field)
        if isinstance(value, str) and value.strip():
            candidates.append(value)
    return candidates


def extract_region_name(data: Any) -> Optional[str]:
    """
    Best human-readable name from a geocoding response.

    Uses the first feature with properties for GeoJSON responses and the
    object itself for jsonv2 responses.
    """
    if not isinstance(data, dict):
        return None

    if data.get("type") == "FeatureCollection":
        features = data.get("features")
        if not isinstance(features, list):
            return None
        place = next(
            (feature.get("properties") for feature in features
             if isinstance(feature, dict) and isinstance(feature.get("properties"), dict)),
            None,
        )
    elif data.get("type") == "Feature":
        place = data.get("properties")
    else:
        place = data

    if not isinstance(place, dict):
        return None
    candidates = address_name_candidates(place)
    return candidates[0] if candidates else None


def _iter_polygon_rings(collection: Dict):
    for feature in collection.get("features", []):
        if not _is_polygon_feature(feature):
            continue
        geometry = feature["geometry"]
        if geometry["type"] == "Polygon":
            yield geometry["coordinates"]
        else:
            for polygon in geometry["coordinates"]:
                yield polygon


def geometry_bounds(collection: Optional[Dict]) -> Optional[BoundingBox]:
    """(south, west, north, east) covering every ring of a sanitized collection."""
    if not collection:
        return None

    lons, lats = [], []
    for rings in _iter_polygon_rings(collection):
        for ring in rings:
            for position in ring:
                lons.append(position[0])
                lats.append(position[1])

    if not lons:
        return None
    return (min(lats), min(lons), max(lats), max(lons))


def build_outside_mask(collection: Optional[Dict]) -> Optional[Dict]:
    """
    A world-sized polygon with each region polygon's outer ring cut out.

    Used to dim everything outside the selected region on satellite layers.
    """
    if not collection:
        return None

    holes = [rings[0] for rings in _iter_polygon_rings(collection) if rings]
    if not holes:
        return None

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {"type": "Polygon", "coordinates": [WORLD_OUTLINE, *holes]},
            }
        ],
    }


def feature_from_place(place: Any) -> Optional[Dict]:
    """
    Wrap a Nominatim jsonv2 search hit as a GeoJSON Feature.

    The hit's `geojson` outline becomes the geometry; address, names and
    `boundingbox` move into properties so the helpers above can read them.
    """
    if not isinstance(place, dict):
        return None

    properties = {
        key: place[key]
        for key in ("display_name", "name", "address", "boundingbox")
        if key in place
    }
    geometry = place.get("geojson")
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": geometry if isinstance(geometry, dict) else None,
    }
