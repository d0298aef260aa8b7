"""
Overlay state projection
Derives the map overlay fill, legend and sidebar cards from the region store
and the active overlay.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from regions.models import OverlayMetrics, OverlayType, RegionData, RiskTier
from regions.risk_scoring import calculate_combined_risk_score
from regions.severity import (
    SEVERITY_COLORS,
    classify_air_quality,
    classify_combined_risk,
    classify_flood_risk,
    classify_temperature,
)
from regions.store import RegionStore
from logging_config import get_logger

logger = get_logger(__name__)

_TIER_ORDER = (RiskTier.LOW, RiskTier.MODERATE, RiskTier.HIGH, RiskTier.CRITICAL)


def _legend(title: str, labels) -> Dict:
    return {
        "title": title,
        "entries": [
            {"tier": tier.value, "color": SEVERITY_COLORS[tier], "label": label}
            for tier, label in zip(_TIER_ORDER, labels)
        ],
    }


OVERLAY_LEGENDS = {
    OverlayType.TEMPERATURE: _legend(
        "Temperature Risk Levels",
        ("Low (< 20°C)", "Moderate (20-30°C)", "High (30-40°C)", "Critical (> 40°C)"),
    ),
    OverlayType.AIR_QUALITY: _legend(
        "Air Quality Risk Levels",
        ("Good (0-50)", "Moderate (51-100)", "Unhealthy (101-200)", "Hazardous (> 200)"),
    ),
    OverlayType.FLOOD: _legend(
        "Flood Risk Levels",
        ("Low (0-30%)", "Moderate (31-60%)", "High (61-80%)", "Critical (> 80%)"),
    ),
    OverlayType.COMBINED: _legend(
        "Composite Climate Risk",
        ("Low (Score ≤ 30)", "Moderate (31-50)", "High (51-70)", "Critical (> 70)"),
    ),
}


def combined_score(temperature: Optional[float], air_quality: Optional[float],
                   flood_risk: Optional[float]) -> Optional[int]:
    """Combined risk score, or None if any input is unknown."""
    if None in (temperature, air_quality, flood_risk):
        return None
    return calculate_combined_risk_score(temperature, air_quality, flood_risk)


def overlay_tier(metrics: Optional[OverlayMetrics], overlay: OverlayType) -> Optional[RiskTier]:
    """Tier of the metric the overlay shows; None when that metric is unknown."""
    if metrics is None or overlay == OverlayType.NONE:
        return None

    if overlay == OverlayType.TEMPERATURE:
        value, classify = metrics.temperature, classify_temperature
    elif overlay == OverlayType.AIR_QUALITY:
        value, classify = metrics.air_quality, classify_air_quality
    elif overlay == OverlayType.FLOOD:
        value, classify = metrics.flood_risk, classify_flood_risk
    else:
        value = combined_score(metrics.temperature, metrics.air_quality, metrics.flood_risk)
        classify = classify_combined_risk

    if value is None:
        return None
    return classify(value)


def overlay_fill_color(metrics: Optional[OverlayMetrics], overlay: OverlayType) -> Optional[str]:
    """
    Fill color for the region polygon under the given overlay.

    Returns None (no fill) when the overlay is off or the metric it needs is
    unknown; unknown values are never painted as "low".
    """
    tier = overlay_tier(metrics, OverlayType(overlay))
    return SEVERITY_COLORS[tier] if tier else None


@dataclass(frozen=True)
class OverlayState:
    active_overlay: OverlayType
    fill_color: Optional[str]
    has_geometry: bool
    overlay_metrics: Optional[OverlayMetrics]
    legend: Optional[Dict]

    def to_dict(self) -> Dict:
        return {
            "active_overlay": self.active_overlay.value,
            "fill_color": self.fill_color,
            "has_geometry": self.has_geometry,
            "overlay_metrics": self.overlay_metrics.to_dict() if self.overlay_metrics else None,
            "legend": self.legend,
        }


def project_overlay_state(store: RegionStore, overlay: OverlayType) -> OverlayState:
    """
    Current overlay state for the store.

    The legend is only shown when a real area exists; a highlight circle
    does not count as one.
    """
    overlay = OverlayType(overlay)
    has_geometry = bool(store.geometry)
    metrics = store.overlay_metrics

    legend = None
    if overlay != OverlayType.NONE and metrics is not None and has_geometry:
        legend = OVERLAY_LEGENDS[overlay]

    return OverlayState(
        active_overlay=overlay,
        fill_color=overlay_fill_color(metrics, overlay),
        has_geometry=has_geometry,
        overlay_metrics=metrics,
        legend=legend,
    )


class OverlayStateProjector:
    """
    Pushes OverlayState to on_change whenever it actually changes.

    Driven synchronously by store notifications and set_active_overlay().
    """

    def __init__(self, store: RegionStore, on_change: Callable[[OverlayState], None],
                 active_overlay: OverlayType = OverlayType.NONE):
        self.store = store
        self.on_change = on_change
        self.active_overlay = OverlayType(active_overlay)
        self.state: Optional[OverlayState] = None
        self._unsubscribe = store.subscribe(self._on_store_change)
        self._push()

    def set_active_overlay(self, overlay: OverlayType):
        self.active_overlay = OverlayType(overlay)
        self._push()

    def close(self):
        self._unsubscribe()

    def _on_store_change(self, store: RegionStore):
        self._push()

    def _push(self):
        state = project_overlay_state(self.store, self.active_overlay)
        if state == self.state:
            return
        self.state = state
        logger.debug(f"Overlay state changed: fill={state.fill_color}",
                     extra={"overlay": state.active_overlay.value})
        self.on_change(state)


def _format_number(value: float) -> str:
    return f"{value:g}"


def _card(title: str, overlay: OverlayType, value: Optional[float], unit: str,
          tier: Optional[RiskTier], active_overlay: OverlayType, missing: str) -> Dict:
    return {
        "title": title,
        "overlay": overlay.value,
        "value": f"{_format_number(value)}{unit}" if value is not None else missing,
        "tier": tier.value if tier else None,
        "color": SEVERITY_COLORS[tier] if tier else None,
        "active": overlay == active_overlay,
    }


def build_region_cards(region: RegionData, active_overlay: OverlayType = OverlayType.NONE) -> List[Dict]:
    """Sidebar cards for a region: three metrics plus the combined score."""
    active_overlay = OverlayType(active_overlay)
    score = combined_score(region.temperature, region.air_quality, region.flood_risk)

    return [
        _card("Temperature", OverlayType.TEMPERATURE, region.temperature, "°C",
              classify_temperature(region.temperature) if region.temperature is not None else None,
              active_overlay, "Not Found"),
        _card("Air Quality Index", OverlayType.AIR_QUALITY, region.air_quality, "",
              classify_air_quality(region.air_quality) if region.air_quality is not None else None,
              active_overlay, "Not Found"),
        _card("Flood Risk", OverlayType.FLOOD, region.flood_risk, "%",
              classify_flood_risk(region.flood_risk) if region.flood_risk is not None else None,
              active_overlay, "Not Found"),
        _card("Combined Risk", OverlayType.COMBINED, score, "",
              classify_combined_risk(score) if score is not None else None,
              active_overlay, "N/A"),
    ]
