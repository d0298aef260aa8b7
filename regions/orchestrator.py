"""
Region analysis orchestration
Drives one user selection end to end: geometry resolution and metric fetches
run concurrently, results land in the RegionStore as they arrive, and the
finished RegionData is published once both have settled.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Set

from data_sources import metrics_api, nominatim_api
from regions.geometry import (
    extract_bounds,
    feature_from_place,
    geometry_bounds,
    sanitize_feature_collection,
)
from regions.models import (
    BoundingBox,
    Coordinate,
    HighlightCircle,
    RegionData,
    highlight_radius_for_zoom,
    normalize_coordinate,
    placeholder_name,
)
from regions.resolver import RECOVERABLE_ERRORS, GeometryResolver, GeometryResult
from regions.store import RegionStore
from regions.water_mask import WaterMaskFetcher
from logging_config import get_logger, log_performance

logger = get_logger(__name__)

DEFAULT_MAP_CENTER = Coordinate(lat=-6.2088, lng=106.8456)
DEFAULT_MAP_ZOOM = 10
SEARCH_RESULT_ZOOM = 10

MetricsFetcher = Callable[[float, float], Awaitable[Dict[str, Optional[float]]]]
PlaceSearch = Callable[[str], Awaitable[Optional[Dict]]]


class MapView:
    """Camera state the orchestrator moves; a UI host mirrors it."""

    def __init__(self, zoom: float = DEFAULT_MAP_ZOOM, center: Coordinate = DEFAULT_MAP_CENTER):
        self.zoom = zoom
        self.center = center
        self.bounds: Optional[BoundingBox] = None

    def fit_bounds(self, bounds: BoundingBox):
        south, west, north, east = bounds
        self.bounds = bounds
        self.center = Coordinate(lat=(south + north) / 2, lng=(west + east) / 2)

    def fly_to(self, lat: float, lng: float, zoom: float):
        self.center = Coordinate(lat=lat, lng=lng)
        self.zoom = zoom
        self.bounds = None

    def to_dict(self) -> Dict:
        return {
            "zoom": self.zoom,
            "center": {"lat": self.center.lat, "lng": self.center.lng},
            "bounds": list(self.bounds) if self.bounds else None,
        }


class RegionAnalysisOrchestrator:
    """
    Coordinates geometry, water mask and metrics for the current selection.

    Every async result is written back with the selection id it started
    with, so results belonging to a superseded selection are dropped by the
    store. Water masks are fire-and-forget; wait_for_background() awaits them.
    """

    def __init__(
        self,
        store: Optional[RegionStore] = None,
        map_view: Optional[MapView] = None,
        resolver: Optional[GeometryResolver] = None,
        water_mask: Optional[WaterMaskFetcher] = None,
        fetch_metrics: Optional[MetricsFetcher] = None,
        search_place: Optional[PlaceSearch] = None,
        on_region_select: Optional[Callable[[RegionData], None]] = None,
    ):
        self.store = store or RegionStore()
        self.map_view = map_view or MapView()
        self.resolver = resolver or GeometryResolver()
        self.water_mask = water_mask or WaterMaskFetcher()
        self.fetch_metrics = fetch_metrics or metrics_api.fetch_region_metrics_async
        self.search_place = search_place or nominatim_api.search_place_async
        self.on_region_select = on_region_select
        self._background: Set[asyncio.Task] = set()

    async def select_location(self, lat: float, lng: float, name: Optional[str] = None,
                              seed: Optional[Dict] = None) -> Optional[RegionData]:
        """
        Analyze a clicked (or searched) location.

        Args:
            lat, lng: Raw map coordinate; normalized before use
            name: Initial region name; defaults to the coordinate placeholder
            seed: GeoJSON Feature from a search hit, tried before the reverse cascade

        Returns:
            The published RegionData, or None if a newer selection superseded this one
        """
        coordinate = normalize_coordinate(lat, lng)
        region = RegionData(
            name=name or placeholder_name(coordinate),
            lat=coordinate.lat,
            lng=coordinate.lng,
        )
        token = self.store.begin_selection(region)
        start_time = time.time()

        await asyncio.gather(
            self._resolve_geometry(token, coordinate, region.name, seed),
            self._load_metrics(token, coordinate),
        )

        if not self.store.is_current(token):
            logger.info("Selection superseded before completion", extra={"selection_id": token})
            return None

        log_performance(logger, "select_location", time.time() - start_time,
                        selection_id=token, lat=coordinate.lat, lon=coordinate.lng)
        if self.on_region_select:
            self.on_region_select(self.store.region)
        return self.store.region

    async def search_region(self, query: str) -> Optional[RegionData]:
        """
        Geocode free text, fly there and analyze the hit.

        Returns:
            The published RegionData, or None when nothing matched (or superseded)
        """
        try:
            hit = await self.search_place(query)
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"Region search failed for {query!r}: {e}")
            hit = None

        if not hit:
            logger.info(f"No search result for {query!r}")
            return None

        try:
            lat, lng = float(hit["lat"]), float(hit["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Search hit for {query!r} has no usable coordinates")
            return None

        self.map_view.fly_to(lat, lng, SEARCH_RESULT_ZOOM)
        return await self.select_location(
            lat, lng,
            name=hit.get("display_name") or query,
            seed=feature_from_place(hit),
        )

    async def wait_for_background(self):
        """Wait for outstanding water mask lookups."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _resolve_geometry(self, token: int, coordinate: Coordinate, name: str,
                                seed: Optional[Dict]):
        properties = {"name": name}
        seed_geometry = sanitize_feature_collection(seed)
        seed_bounds = extract_bounds(seed)

        if seed_geometry:
            result = GeometryResult(success=True, bounds=seed_bounds, geometry=seed_geometry, source="seed")
        else:
            result = await self.resolver.resolve(
                coordinate.lat, coordinate.lng,
                properties=properties,
                fallback_bounds=seed_bounds,
            )

        if not self.store.is_current(token):
            return

        if result.success and result.geometry:
            area_bounds = geometry_bounds(result.geometry)
            bounds = result.bounds or area_bounds
            self.store.set_geometry(token, result.geometry, bounds)
            if area_bounds:
                self.map_view.fit_bounds(area_bounds)
            if bounds:
                self._start_water_mask(token, bounds)
        else:
            radius = highlight_radius_for_zoom(self.map_view.zoom)
            self.store.set_highlight(token, HighlightCircle(center=coordinate, radius_m=radius))

        if result.country_name:
            self.store.set_region_name(token, result.country_name)

    async def _load_metrics(self, token: int, coordinate: Coordinate):
        try:
            metrics = await self.fetch_metrics(coordinate.lat, coordinate.lng)
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Metric fetch failed: {e}", extra={"selection_id": token})
            metrics = {}
        self.store.set_metrics(token, metrics or {})

    def _start_water_mask(self, token: int, bounds: BoundingBox):
        task = asyncio.create_task(self._load_water_mask(token, bounds))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _load_water_mask(self, token: int, bounds: BoundingBox):
        water = await self.water_mask.fetch(bounds)
        self.store.set_water_geometry(token, water)
