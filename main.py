from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import os
import time
from typing import Dict, Optional

from logging_config import setup_logging, get_logger, log_error, log_performance
from data_sources import metrics_api, nominatim_api, overpass_api
from data_sources.cache import clear_cache, get_cache_stats
from data_sources.error_handling import check_provider_configuration
from regions.development import generate_planning_grid
from regions.geometry import build_outside_mask
from regions.models import OverlayType, RegionData
from regions.orchestrator import DEFAULT_MAP_ZOOM, MapView, RegionAnalysisOrchestrator
from regions.overlay import build_region_cards, project_overlay_state
from regions.resolver import GeometryResolver
from regions.risk_scoring import calculate_urban_risk_score, get_habitability
from regions.water_mask import WaterMaskFetcher

# Load environment variables
load_dotenv()

# Configure logging
setup_logging(
    level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=os.getenv("LOG_JSON", "true").lower() not in ("0", "false", "no"),
)
logger = get_logger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="Terra Region API",
    description="Region geometry resolution and climate risk overlays",
    version=VERSION
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Provider-backed collaborators are shared; selection state is per request
resolver = GeometryResolver()
water_mask = WaterMaskFetcher()


def build_orchestrator(zoom: float = DEFAULT_MAP_ZOOM) -> RegionAnalysisOrchestrator:
    return RegionAnalysisOrchestrator(
        map_view=MapView(zoom=zoom),
        resolver=resolver,
        water_mask=water_mask,
        fetch_metrics=metrics_api.fetch_region_metrics_async,
        search_place=nominatim_api.search_place_async,
    )


def _region_response(orchestrator: RegionAnalysisOrchestrator, region: RegionData,
                     overlay: OverlayType, request_id: str) -> Dict:
    store = orchestrator.store
    state = project_overlay_state(store, overlay)

    urban_risk_score = None
    habitability = None
    if None not in (region.temperature, region.air_quality, region.flood_risk):
        urban_risk_score = calculate_urban_risk_score(region.temperature, region.air_quality, region.flood_risk)
        habitability = get_habitability(urban_risk_score).value

    snapshot = store.snapshot()
    return {
        "status": "success",
        "request_id": request_id,
        "region": region.to_dict(),
        "geometry": snapshot["geometry"],
        "bounds": snapshot["bounds"],
        "highlight": snapshot["highlight"],
        "water_geometry": snapshot["water_geometry"],
        "outside_mask": build_outside_mask(store.geometry),
        "overlay": state.to_dict(),
        "cards": build_region_cards(region, overlay),
        "urban_risk_score": urban_risk_score,
        "habitability": habitability,
        "map": orchestrator.map_view.to_dict(),
    }


@app.get("/")
def root():
    """Service descriptor."""
    return {
        "service": "Terra Region API",
        "status": "running",
        "version": VERSION,
        "overlays": [overlay.value for overlay in OverlayType],
        "endpoints": {
            "region": "/region?lat=LAT&lng=LNG",
            "search": "/region/search?q=PLACE",
            "grid": "/grid?south=S&west=W&north=N&east=E",
            "docs": "/docs"
        }
    }


@app.get("/region")
async def get_region(
    lat: float,
    lng: float,
    zoom: float = Query(DEFAULT_MAP_ZOOM, ge=0, le=20),
    overlay: OverlayType = OverlayType.NONE,
):
    """
    Resolve the region around a map click and compute its risk overlay.

    Parameters:
        lat, lng: Clicked coordinate (latitude clamped, longitude wrapped)
        zoom: Current map zoom, used for the fallback highlight radius
        overlay: Active overlay used for fill color, legend and card state

    Returns:
        Region data, geometry or highlight circle, water mask, overlay state and cards
    """
    start_time = time.time()
    request_id = f"req_{int(start_time * 1000)}"
    logger.info("Starting region request", extra={
        "request_id": request_id, "lat": lat, "lon": lng, "zoom": zoom, "overlay": overlay.value
    })

    orchestrator = build_orchestrator(zoom)
    try:
        region = await orchestrator.select_location(lat, lng)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if region is None:
        raise HTTPException(status_code=409, detail="Selection superseded")

    await orchestrator.wait_for_background()
    log_performance(logger, "region_request", time.time() - start_time, request_id=request_id)
    return _region_response(orchestrator, region, overlay, request_id)


@app.get("/region/search")
async def search_region(
    q: str = Query(..., min_length=1),
    overlay: OverlayType = OverlayType.NONE,
):
    """
    Geocode a place name, then analyze it like a map click.

    The map always flies to the search result zoom, so the fallback
    highlight radius does not depend on the caller's zoom.
    """
    start_time = time.time()
    request_id = f"req_{int(start_time * 1000)}"
    logger.info(f"Starting region search for {q!r}", extra={"request_id": request_id, "overlay": overlay.value})

    orchestrator = build_orchestrator()
    region = await orchestrator.search_region(q)

    if region is None:
        log_error(logger, "not_found", f"Region search found nothing for {q!r}", request_id=request_id)
        raise HTTPException(
            status_code=404,
            detail="Could not find the requested place. Please check the name."
        )

    await orchestrator.wait_for_background()
    log_performance(logger, "region_search", time.time() - start_time, request_id=request_id)
    return _region_response(orchestrator, region, overlay, request_id)


@app.get("/grid")
async def planning_grid(
    south: float = Query(..., ge=-90, le=90),
    west: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    rows: int = Query(3, ge=1, le=10),
    cols: int = Query(3, ge=1, le=10),
):
    """Urban development planning grid over a bounding box."""
    if south >= north or west >= east:
        raise HTTPException(status_code=422, detail="Bounding box must have south < north and west < east")

    start_time = time.time()
    cells = await generate_planning_grid((south, west, north, east), rows, cols,
                                         metrics_api.fetch_region_metrics_async)
    log_performance(logger, "planning_grid", time.time() - start_time, rows=rows, cols=cols)

    return {
        "status": "success",
        "bounds": [south, west, north, east],
        "requested_cells": rows * cols,
        "cells": [cell.to_dict() for cell in cells],
    }


@app.get("/health")
def health_check():
    """Provider configuration and cache health."""
    providers = check_provider_configuration()
    return {
        "status": "healthy",
        "providers": providers,
        "cache_stats": get_cache_stats(),
        "version": VERSION
    }


@app.post("/cache/clear")
async def clear_cache_endpoint(cache_type: Optional[str] = None):
    """Clear cache entries."""
    try:
        await clear_cache(cache_type)
        return {
            "status": "success",
            "message": f"Cache cleared for {cache_type or 'all'}"
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Cache clear failed: {e}")


@app.get("/cache/stats")
def cache_stats_endpoint():
    """Get cache statistics."""
    try:
        stats = get_cache_stats()
        return {
            "status": "success",
            "cache_stats": stats
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Cache stats failed: {e}")


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize async resources on startup."""
    logger.info("Starting Terra Region API server")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up async resources on shutdown."""
    logger.info("Shutting down Terra Region API server")
    await nominatim_api.close_session()
    await overpass_api.close_session()
    await metrics_api.close_session()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
