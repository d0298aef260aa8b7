"""
Region geometry resolution
Cascading lookup that turns a coordinate into some renderable area:

1. reverse geocode at zoom 14, 12, 10, 8 and stop at the first polygon
2. forward geocode the best name found; use its polygon, else its bbox
3. with no name at all, ask for the country at zoom 3 and retry step 2
4. give up (success=False) and let the caller draw a highlight circle

Provider failures at any single step only mean "nothing here"; the cascade
moves on. Only exhausting every step is a failure, and even that is a normal
outcome rather than an exception.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import aiohttp

from data_sources import nominatim_api
from data_sources.error_handling import TerraError
from regions.geometry import (
    build_bounds_feature_collection,
    extract_bounds,
    extract_region_name,
    sanitize_feature_collection,
)
from regions.models import BoundingBox
from logging_config import get_logger

logger = get_logger(__name__)

# Neighbourhood -> city -> county -> region
REVERSE_ZOOM_LEVELS = (14, 12, 10, 8)

# Failures that mean "this provider step produced nothing"
RECOVERABLE_ERRORS = (TerraError, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)

Provider = Callable[..., Awaitable[Optional[Any]]]


@dataclass
class GeometryResult:
    """
    Outcome of a resolution attempt.

    success is True when some area was produced: a real polygon or a
    rectangle synthesized from a bounding box.
    """
    success: bool
    country_name: Optional[str] = None
    bounds: Optional[BoundingBox] = None
    geometry: Optional[Dict] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "country_name": self.country_name,
            "bounds": list(self.bounds) if self.bounds else None,
            "source": self.source,
        }


class GeometryResolver:
    """Runs the reverse -> forward -> country fallback cascade."""

    def __init__(
        self,
        reverse_geocode: Optional[Provider] = None,
        reverse_geocode_coarse: Optional[Provider] = None,
        search_geojson: Optional[Provider] = None,
        zoom_levels: Sequence[int] = REVERSE_ZOOM_LEVELS,
    ):
        self.reverse_geocode = reverse_geocode or nominatim_api.reverse_geocode_async
        self.reverse_geocode_coarse = reverse_geocode_coarse or nominatim_api.reverse_geocode_coarse_async
        self.search_geojson = search_geojson or nominatim_api.search_geojson_async
        self.zoom_levels = tuple(zoom_levels)

    async def _call(self, step: str, provider: Provider, *args) -> Optional[Any]:
        try:
            return await provider(*args)
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"Geometry step {step} failed: {e}", extra={"error_type": type(e).__name__})
            return None

    async def resolve(
        self,
        lat: float,
        lng: float,
        properties: Optional[Dict] = None,
        fallback_bounds: Optional[BoundingBox] = None,
    ) -> GeometryResult:
        """
        Resolve an area for a point.

        Args:
            lat, lng: Normalized coordinate
            properties: Properties attached to a synthesized rectangle
            fallback_bounds: Bounding box to fall back on when providers give none

        Returns:
            GeometryResult; geometry is a sanitized FeatureCollection on success
        """
        country_name = None
        last_bounds = fallback_bounds

        for zoom in self.zoom_levels:
            data = await self._call(f"reverse@{zoom}", self.reverse_geocode, lat, lng, zoom)
            if data is None:
                continue

            sanitized = sanitize_feature_collection(data)
            bounds = extract_bounds(data) or last_bounds
            country_name = country_name or extract_region_name(data)

            if sanitized:
                logger.info(f"Resolved polygon at zoom {zoom}", extra={"lat": lat, "lon": lng, "zoom": zoom})
                return GeometryResult(
                    success=True,
                    country_name=country_name,
                    bounds=bounds,
                    geometry=sanitized,
                    source=f"reverse:{zoom}",
                )
            last_bounds = bounds

        if not country_name:
            coarse = await self._call("reverse@coarse", self.reverse_geocode_coarse, lat, lng)
            country_name = self._coarse_name(coarse)

        name_result = await self.resolve_by_name(
            country_name,
            properties=properties,
            fallback_bounds=fallback_bounds or last_bounds,
        )

        if not name_result.success:
            logger.info("Geometry cascade exhausted", extra={"lat": lat, "lon": lng})

        return GeometryResult(
            success=name_result.success,
            country_name=name_result.country_name or country_name,
            bounds=name_result.bounds or fallback_bounds or last_bounds,
            geometry=name_result.geometry,
            source=name_result.source,
        )

    async def resolve_by_name(
        self,
        name: Optional[str],
        properties: Optional[Dict] = None,
        fallback_bounds: Optional[BoundingBox] = None,
    ) -> GeometryResult:
        """
        Forward geocode a region name; polygon first, bounding-box rectangle second.
        """
        if not name:
            return GeometryResult(success=False, bounds=fallback_bounds)

        data = await self._call("search", self.search_geojson, name)
        if data is None:
            return GeometryResult(success=False, country_name=name, bounds=fallback_bounds)

        sanitized = sanitize_feature_collection(data)
        bounds = extract_bounds(data) or fallback_bounds

        if sanitized:
            return GeometryResult(success=True, country_name=name, bounds=bounds,
                                  geometry=sanitized, source="search")

        if bounds:
            rectangle = build_bounds_feature_collection(bounds, {**(properties or {}), "name": name})
            return GeometryResult(success=True, country_name=name, bounds=bounds,
                                  geometry=rectangle, source="search:bounds")

        return GeometryResult(success=False, country_name=name, bounds=fallback_bounds)

    @staticmethod
    def _coarse_name(data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        address = data.get("address")
        if isinstance(address, dict) and address.get("country"):
            return address["country"]
        return data.get("display_name") or None
