"""
Severity classification
Maps a single metric (or the combined score) to a RiskTier and its display color.

Thresholds are metric-specific, but the four tiers and their colors are shared
by map overlays, legends and sidebar cards.
"""

import math
from typing import Optional

from regions.models import RiskTier
from logging_config import get_logger

logger = get_logger(__name__)

SEVERITY_COLORS = {
    RiskTier.LOW: '#22c55e',
    RiskTier.MODERATE: '#eab308',
    RiskTier.HIGH: '#f97316',
    RiskTier.CRITICAL: '#dc2626',
}

# Upper bounds per tier, checked in order; anything above the last is critical.
# Temperature uses strict "<" bounds, the others inclusive "<=".
TEMPERATURE_BOUNDS = (20.0, 30.0, 40.0)
AIR_QUALITY_BOUNDS = (50.0, 100.0, 200.0)
FLOOD_RISK_BOUNDS = (30.0, 60.0, 80.0)
COMBINED_RISK_BOUNDS = (30.0, 50.0, 70.0)

_TIERS = (RiskTier.LOW, RiskTier.MODERATE, RiskTier.HIGH)


def _finite_or_zero(value: Optional[float], metric: str) -> float:
    """Missing or non-finite input degrades to 0 (the low end of every scale)."""
    if value is None or isinstance(value, bool):
        logger.debug(f"Missing {metric} value, classifying as 0")
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric {metric} value {value!r}, classifying as 0")
        return 0.0
    if not math.isfinite(number):
        logger.debug(f"Non-finite {metric} value {value!r}, classifying as 0")
        return 0.0
    return number


def _classify(value: float, bounds, inclusive: bool) -> RiskTier:
    for bound, tier in zip(bounds, _TIERS):
        if value < bound or (inclusive and value == bound):
            return tier
    return RiskTier.CRITICAL


def classify_temperature(temperature: Optional[float]) -> RiskTier:
    """°C: <20 low, <30 moderate, <40 high, else critical."""
    return _classify(_finite_or_zero(temperature, "temperature"), TEMPERATURE_BOUNDS, inclusive=False)


def classify_air_quality(aqi: Optional[float]) -> RiskTier:
    """AQI: <=50 low, <=100 moderate, <=200 high, else critical."""
    return _classify(_finite_or_zero(aqi, "air_quality"), AIR_QUALITY_BOUNDS, inclusive=True)


def classify_flood_risk(flood_risk: Optional[float]) -> RiskTier:
    """Flood %: <=30 low, <=60 moderate, <=80 high, else critical."""
    return _classify(_finite_or_zero(flood_risk, "flood_risk"), FLOOD_RISK_BOUNDS, inclusive=True)


def classify_combined_risk(score: Optional[float]) -> RiskTier:
    """Combined 0-100 score: <=30 low, <=50 moderate, <=70 high, else critical."""
    return _classify(_finite_or_zero(score, "combined_risk"), COMBINED_RISK_BOUNDS, inclusive=True)


def tier_color(tier: RiskTier) -> str:
    return SEVERITY_COLORS[tier]


def temperature_severity_color(temperature: Optional[float]) -> str:
    return tier_color(classify_temperature(temperature))


def air_quality_severity_color(aqi: Optional[float]) -> str:
    return tier_color(classify_air_quality(aqi))


def flood_severity_color(flood_risk: Optional[float]) -> str:
    return tier_color(classify_flood_risk(flood_risk))


def combined_risk_severity_color(score: Optional[float]) -> str:
    return tier_color(classify_combined_risk(score))
