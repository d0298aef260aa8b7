"""
Async Nominatim API Client
Reverse and forward geocoding with polygon output for region resolution
"""

import os
import aiohttp
from typing import Any, Dict, Optional
from .cache import cached, CACHE_TTL
from .error_handling import safe_api_call, handle_api_timeout, raise_for_provider_status
from logging_config import get_logger, log_api_call

logger = get_logger(__name__)

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")
USER_AGENT = os.getenv("TERRA_USER_AGENT", "Terra/1.0")

# Zoom used for the broad country-level fallback lookup
COARSE_REVERSE_ZOOM = 3

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=50, limit_per_host=10)
        timeout = aiohttp.ClientTimeout(total=15, connect=5, sock_read=10)
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


async def _get_json(endpoint: str, params: Dict[str, Any]) -> Optional[Any]:
    """GET a Nominatim endpoint and decode the JSON body (any content type)."""
    log_api_call(logger, "nominatim", endpoint, **{k: v for k, v in params.items() if k in ("zoom", "lat", "lon")})

    session = await get_session()
    async with session.get(f"{NOMINATIM_URL}/{endpoint}", params=params) as response:
        raise_for_provider_status("nominatim", response.status, getattr(response, "reason", None))
        data = await response.json(content_type=None)

    if isinstance(data, dict) and data.get("error"):
        logger.debug(f"Nominatim {endpoint} returned error payload: {data['error']}")
        return None
    return data


@cached(ttl_seconds=CACHE_TTL['geocoding'])
@safe_api_call("nominatim")
@handle_api_timeout(timeout_seconds=15)
async def reverse_geocode_async(lat: float, lon: float, zoom: int) -> Optional[Dict]:
    """
    Reverse geocode a point at the given zoom with polygon output.

    Args:
        lat, lon: Point coordinates
        zoom: Nominatim detail level (14 neighbourhood ... 8 county, 3 country)

    Returns:
        GeoJSON FeatureCollection (features carry address/display_name/bbox)
        or None if the request failed
    """
    return await _get_json("reverse", {
        "format": "geojson",
        "polygon_geojson": 1,
        "extratags": 1,
        "zoom": zoom,
        "lat": lat,
        "lon": lon,
    })


@cached(ttl_seconds=CACHE_TTL['geocoding'])
@safe_api_call("nominatim")
@handle_api_timeout(timeout_seconds=15)
async def reverse_geocode_coarse_async(lat: float, lon: float, zoom: int = COARSE_REVERSE_ZOOM) -> Optional[Dict]:
    """
    Broad reverse lookup used only to recover a country or display name.

    Returns:
        jsonv2 place dict ({"address": {...}, "display_name": ..., "boundingbox": [...]})
        or None if the request failed
    """
    return await _get_json("reverse", {
        "format": "jsonv2",
        "zoom": zoom,
        "lat": lat,
        "lon": lon,
    })


@cached(ttl_seconds=CACHE_TTL['geocoding'])
@safe_api_call("nominatim")
@handle_api_timeout(timeout_seconds=15)
async def search_geojson_async(query: str) -> Optional[Dict]:
    """
    Forward geocode a resolved region name with polygon output.

    Returns:
        GeoJSON FeatureCollection with at most one feature, or None if failed
    """
    return await _get_json("search", {
        "format": "geojson",
        "polygon_geojson": 1,
        "limit": 1,
        "q": query,
    })


@cached(ttl_seconds=CACHE_TTL['geocoding'])
@safe_api_call("nominatim")
@handle_api_timeout(timeout_seconds=15)
async def search_place_async(query: str) -> Optional[Dict]:
    """
    Forward geocode free text from the region search box.

    Returns:
        First jsonv2 hit with lat/lon, display_name, boundingbox, address and
        a `geojson` outline, or None when nothing matched
    """
    data = await _get_json("search", {
        "format": "jsonv2",
        "polygon_geojson": 1,
        "addressdetails": 1,
        "limit": 1,
        "q": query,
    })

    if not data or not isinstance(data, list):
        return None

    hit = data[0]
    if "lat" not in hit or "lon" not in hit:
        return None
    return hit
