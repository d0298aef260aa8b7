"""
Water mask
Fetches lakes and riverbanks inside a region's bounding box so the map can
draw them over the region fill.
"""

from typing import Awaitable, Callable, Dict, Optional

from data_sources import overpass_api
from data_sources.error_handling import with_fallback
from regions.geometry import sanitize_feature_collection
from regions.models import BoundingBox
from logging_config import get_logger

logger = get_logger(__name__)

# Boxes larger than this (e.g. whole countries) are never queried
MAX_WATER_AREA_SQ_DEGREES = 100.0

WaterQuery = Callable[[float, float, float, float], Awaitable[Optional[Dict]]]


def bbox_area_sq_degrees(bounds: BoundingBox) -> float:
    south, west, north, east = bounds
    return (north - south) * (east - west)


class WaterMaskFetcher:
    """Area-guarded water polygon lookup. Never raises."""

    def __init__(self, query: Optional[WaterQuery] = None,
                 max_area_sq_degrees: float = MAX_WATER_AREA_SQ_DEGREES):
        self.query = query or overpass_api.query_water_features_async
        self.max_area_sq_degrees = max_area_sq_degrees

    @with_fallback(None)
    async def fetch(self, bounds: Optional[BoundingBox]) -> Optional[Dict]:
        """
        Water polygons within bounds as a sanitized FeatureCollection.

        Returns None without any network call when bounds are missing or
        cover more than max_area_sq_degrees.
        """
        if not bounds:
            return None

        area = bbox_area_sq_degrees(bounds)
        if area > self.max_area_sq_degrees:
            logger.debug(f"Skipping water mask, bbox area {area:.1f} sq deg exceeds limit")
            return None

        south, west, north, east = bounds
        data = await self.query(south, west, north, east)
        return sanitize_feature_collection(data)
