"""
Async client for the environmental metric collaborators
Temperature, air quality and flood risk prediction endpoints
"""

import os
import math
import asyncio
import aiohttp
from typing import Dict, Optional
from .error_handling import safe_api_call, raise_for_provider_status
from logging_config import get_logger, log_api_call

logger = get_logger(__name__)

METRICS_BASE_URL = os.getenv("TERRA_METRICS_URL", "http://localhost:3000/api/predict").rstrip("/")

# endpoint name -> numeric field inside the response's "data" object
METRIC_ENDPOINTS = {
    "temperature": ("temperature", "currentTemp"),
    "air_quality": ("air-quality", "currentAQI"),
    "flood_risk": ("flood", "overallRisk"),
}

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=30, limit_per_host=10)
        timeout = aiohttp.ClientTimeout(total=30, connect=5)
        _session = aiohttp.ClientSession(connector=connector, timeout=timeout)
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def _extract_metric(payload, field: str) -> Optional[float]:
    """Pull data.<field> as a finite float; anything else is unknown (None)."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    value = data.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


async def _post_metric(metric: str, lat: float, lng: float) -> Optional[float]:
    endpoint, field = METRIC_ENDPOINTS[metric]
    url = f"{METRICS_BASE_URL}/{endpoint}"
    log_api_call(logger, "metrics", endpoint, lat=lat, lon=lng)

    session = await get_session()
    async with session.post(url, json={"lat": lat, "lng": lng}) as response:
        raise_for_provider_status(f"metrics:{endpoint}", response.status, getattr(response, "reason", None))
        payload = await response.json(content_type=None)

    value = _extract_metric(payload, field)
    if value is None:
        logger.warning(f"Metric {metric} missing from response", extra={"api_name": "metrics", "lat": lat, "lon": lng})
    return value


@safe_api_call("metrics")
async def fetch_temperature_async(lat: float, lng: float) -> Optional[float]:
    """Current temperature in °C, or None when unavailable."""
    return await _post_metric("temperature", lat, lng)


@safe_api_call("metrics")
async def fetch_air_quality_async(lat: float, lng: float) -> Optional[float]:
    """Current AQI, or None when unavailable."""
    return await _post_metric("air_quality", lat, lng)


@safe_api_call("metrics")
async def fetch_flood_risk_async(lat: float, lng: float) -> Optional[float]:
    """Overall flood risk percentage, or None when unavailable."""
    return await _post_metric("flood_risk", lat, lng)


async def fetch_region_metrics_async(lat: float, lng: float) -> Dict[str, Optional[float]]:
    """
    Fetch all three metrics concurrently.

    A failure in one fetch only leaves that field as None.

    Returns:
        {"temperature": ..., "air_quality": ..., "flood_risk": ...}
    """
    results = await asyncio.gather(
        fetch_temperature_async(lat, lng),
        fetch_air_quality_async(lat, lng),
        fetch_flood_risk_async(lat, lng),
        return_exceptions=True,
    )

    metrics = {}
    for name, result in zip(("temperature", "air_quality", "flood_risk"), results):
        if isinstance(result, Exception):
            logger.error(f"Metric fetch {name} failed: {result}", extra={"lat": lat, "lon": lng})
            result = None
        metrics[name] = result
    return metrics
