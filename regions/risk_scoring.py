"""
Risk scoring
Two independent composite scores over temperature, AQI and flood risk:

- Urban planning risk: bucket temperature and AQI, then weight 25/25/50.
  Feeds the five-tier habitability scale of the development grid.
- Combined risk: smooth 0-100 normalization of each metric, weighted 30/35/35.
  Feeds the "Combined Risk" overlay and sidebar card.

Both are 0-100 with higher meaning worse. Their weights and bucketing differ
on purpose; keep them separate.
"""

import math
from enum import Enum

# Urban planning risk: (exclusive lower bound, bucket value), first match wins
TEMPERATURE_RISK_BUCKETS = ((35, 100), (30, 80), (25, 50), (20, 30))
TEMPERATURE_RISK_FLOOR = 20
AQI_RISK_BUCKETS = ((200, 100), (150, 80), (100, 60), (50, 40))
AQI_RISK_FLOOR = 20

URBAN_WEIGHTS = {"temperature": 0.25, "air_quality": 0.25, "flood_risk": 0.5}
COMBINED_WEIGHTS = {"temperature": 0.3, "air_quality": 0.35, "flood_risk": 0.35}

# Combined risk normalization
TEMPERATURE_BASELINE_C = 10.0
TEMPERATURE_SPAN_C = 30.0
AQI_SPAN = 200.0


class Habitability(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"
    CRITICAL = "critical"


# Inclusive upper bound per habitability tier
HABITABILITY_BOUNDS = (
    (30, Habitability.EXCELLENT),
    (50, Habitability.GOOD),
    (70, Habitability.MODERATE),
    (85, Habitability.POOR),
)


def _bucket(value: float, buckets, floor: int) -> int:
    for lower_bound, risk in buckets:
        if value > lower_bound:
            return risk
    return floor


def temperature_risk_bucket(temperature: float) -> int:
    return _bucket(temperature, TEMPERATURE_RISK_BUCKETS, TEMPERATURE_RISK_FLOOR)


def aqi_risk_bucket(aqi: float) -> int:
    return _bucket(aqi, AQI_RISK_BUCKETS, AQI_RISK_FLOOR)


def calculate_urban_risk_score(temperature: float, aqi: float, flood_risk: float) -> int:
    """
    Urban planning risk score (0-100, higher = worse).

    Temperature and AQI are first bucketed into discrete risk values, then
    weighted with flood risk (already a percentage) at 25/25/50.

    Example:
        calculate_urban_risk_score(36, 210, 90) == round(25 + 25 + 45) == 95
    """
    weighted = (
        temperature_risk_bucket(temperature) * URBAN_WEIGHTS["temperature"]
        + aqi_risk_bucket(aqi) * URBAN_WEIGHTS["air_quality"]
        + flood_risk * URBAN_WEIGHTS["flood_risk"]
    )
    return _round_half_up(weighted)


def _round_half_up(value: float) -> int:
    """Scores round .5 upwards, matching the dashboard's display rounding."""
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def calculate_combined_risk_score(temperature: float, aqi: float, flood_risk: float) -> int:
    """
    Combined climate risk score, always within [0, 100].

    temperature: 10°C -> 0, 40°C -> 100 (clamped)
    aqi:         0 -> 0, 200 -> 100 (clamped)
    flood_risk:  clamped to 0-100
    """
    temperature_score = _clamp(((temperature - TEMPERATURE_BASELINE_C) / TEMPERATURE_SPAN_C) * 100)
    aqi_score = _clamp((aqi / AQI_SPAN) * 100)
    flood_score = _clamp(flood_risk)

    weighted = (
        temperature_score * COMBINED_WEIGHTS["temperature"]
        + aqi_score * COMBINED_WEIGHTS["air_quality"]
        + flood_score * COMBINED_WEIGHTS["flood_risk"]
    )
    return _round_half_up(_clamp(weighted))


def get_habitability(urban_risk_score: float) -> Habitability:
    """<=30 excellent, <=50 good, <=70 moderate, <=85 poor, else critical."""
    for upper_bound, habitability in HABITABILITY_BOUNDS:
        if urban_risk_score <= upper_bound:
            return habitability
    return Habitability.CRITICAL
