"""
Region data model
Coordinates, region snapshots, overlay metrics and fallback highlight shapes
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional, Tuple

# (south, west, north, east) in degrees
BoundingBox = Tuple[float, float, float, float]

# Highlight radius tiers: (min zoom exclusive, radius in meters)
HIGHLIGHT_RADIUS_TIERS = (
    (12, 1000.0),   # street / neighbourhood view
    (8, 4000.0),    # city view
)
HIGHLIGHT_RADIUS_DEFAULT = 10000.0


class RiskTier(str, Enum):
    """Shared four-level severity vocabulary."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class OverlayType(str, Enum):
    """Map coloring modes."""
    NONE = "none"
    TEMPERATURE = "temperature"
    AIR_QUALITY = "air-quality"
    FLOOD = "flood"
    COMBINED = "combined"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


def normalize_coordinate(lat: float, lng: float) -> Coordinate:
    """
    Clamp latitude into [-90, 90] and wrap longitude into [-180, 180).

    Wrapping keeps clicks on a panned-around world map on the right meridian;
    (95, 185) becomes (90, -175). Idempotent.

    Raises:
        ValueError: if either value is not a finite number
    """
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError(f"Coordinate must be finite, got ({lat}, {lng})")

    normalized_lat = max(-90.0, min(90.0, float(lat)))
    normalized_lng = ((float(lng) + 180.0) % 360.0) - 180.0
    return Coordinate(lat=normalized_lat, lng=normalized_lng)


def placeholder_name(coordinate: Coordinate) -> str:
    """Name shown until geocoding resolves a real one."""
    return f"Location ({coordinate.lat:.4f}, {coordinate.lng:.4f})"


@dataclass
class RegionData:
    """
    The currently selected location as shown in the sidebar.

    Metric fields are None until their fetch settles; None always means
    "unknown", never zero.
    """
    name: str
    lat: float
    lng: float
    temperature: Optional[float] = None
    air_quality: Optional[float] = None
    flood_risk: Optional[float] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class OverlayMetrics:
    """Metric snapshot used only for overlay coloring."""
    temperature: Optional[float] = None
    air_quality: Optional[float] = None
    flood_risk: Optional[float] = None

    def is_complete(self) -> bool:
        return None not in (self.temperature, self.air_quality, self.flood_risk)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class HighlightCircle:
    """Circular stand-in drawn when no polygon could be resolved."""
    center: Coordinate
    radius_m: float

    def to_dict(self) -> Dict:
        return {
            "center": {"lat": self.center.lat, "lng": self.center.lng},
            "radius_m": self.radius_m,
        }


def highlight_radius_for_zoom(zoom: float) -> float:
    """1 km above zoom 12, 4 km above zoom 8, 10 km otherwise."""
    for min_zoom, radius in HIGHLIGHT_RADIUS_TIERS:
        if zoom > min_zoom:
            return radius
    return HIGHLIGHT_RADIUS_DEFAULT
