"""
Region store
The single "current selection" slot shared by the map and the sidebar.

Each selection gets a monotonic selection id. Async work captures the id it
was started with and hands it back to every mutator; mutators ignore writes
carrying a stale id, so a slow response for an earlier click can never
overwrite the current one.
"""

from typing import Callable, Dict, List, Optional

from regions.models import BoundingBox, HighlightCircle, OverlayMetrics, RegionData
from logging_config import get_logger

logger = get_logger(__name__)

Listener = Callable[["RegionStore"], None]


class RegionStore:

    def __init__(self):
        self.selection_id = 0
        self.region: Optional[RegionData] = None
        self.geometry: Optional[Dict] = None
        self.bounds: Optional[BoundingBox] = None
        self.highlight: Optional[HighlightCircle] = None
        self.water_geometry: Optional[Dict] = None
        self.overlay_metrics: Optional[OverlayMetrics] = None
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def begin_selection(self, region: RegionData) -> int:
        """
        Start a new selection and clear everything from the previous one.

        Returns:
            The new selection id
        """
        self.selection_id += 1
        self.region = region
        self.geometry = None
        self.bounds = None
        self.highlight = None
        self.water_geometry = None
        self.overlay_metrics = None
        logger.debug("Selection started", extra={"selection_id": self.selection_id})
        self._notify()
        return self.selection_id

    def is_current(self, selection_id: int) -> bool:
        return selection_id == self.selection_id

    def _accept(self, selection_id: int, what: str) -> bool:
        if self.is_current(selection_id):
            return True
        logger.debug(f"Dropping stale {what}", extra={"selection_id": selection_id})
        return False

    def set_geometry(self, selection_id: int, geometry: Optional[Dict],
                     bounds: Optional[BoundingBox] = None) -> bool:
        """Store a resolved area. A real area replaces any highlight circle."""
        if not self._accept(selection_id, "geometry"):
            return False
        self.geometry = geometry
        self.bounds = bounds
        if geometry:
            self.highlight = None
        self._notify()
        return True

    def set_highlight(self, selection_id: int, highlight: Optional[HighlightCircle]) -> bool:
        if not self._accept(selection_id, "highlight"):
            return False
        self.highlight = highlight
        self._notify()
        return True

    def set_water_geometry(self, selection_id: int, water_geometry: Optional[Dict]) -> bool:
        if not self._accept(selection_id, "water geometry"):
            return False
        self.water_geometry = water_geometry
        self._notify()
        return True

    def set_region_name(self, selection_id: int, name: str) -> bool:
        if not self._accept(selection_id, "region name") or self.region is None:
            return False
        self.region.name = name
        self._notify()
        return True

    def set_metrics(self, selection_id: int, metrics: Dict[str, Optional[float]]) -> bool:
        """Merge settled metric values into the region and take the overlay snapshot."""
        if not self._accept(selection_id, "metrics") or self.region is None:
            return False
        self.region.temperature = metrics.get("temperature")
        self.region.air_quality = metrics.get("air_quality")
        self.region.flood_risk = metrics.get("flood_risk")
        self.overlay_metrics = OverlayMetrics(
            temperature=self.region.temperature,
            air_quality=self.region.air_quality,
            flood_risk=self.region.flood_risk,
        )
        self._notify()
        return True

    def snapshot(self) -> Dict:
        return {
            "selection_id": self.selection_id,
            "region": self.region.to_dict() if self.region else None,
            "geometry": self.geometry,
            "bounds": list(self.bounds) if self.bounds else None,
            "highlight": self.highlight.to_dict() if self.highlight else None,
            "water_geometry": self.water_geometry,
            "overlay_metrics": self.overlay_metrics.to_dict() if self.overlay_metrics else None,
        }
