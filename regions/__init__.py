"""
Regions Package
Geometry resolution, risk scoring and overlay state for selected map regions
"""

from .models import Coordinate, OverlayType, RegionData, RiskTier
from .orchestrator import MapView, RegionAnalysisOrchestrator
from .overlay import OverlayStateProjector
from .resolver import GeometryResolver, GeometryResult
from .store import RegionStore
from .water_mask import WaterMaskFetcher

__all__ = [
    'Coordinate',
    'OverlayType',
    'RegionData',
    'RiskTier',
    'MapView',
    'RegionAnalysisOrchestrator',
    'OverlayStateProjector',
    'GeometryResolver',
    'GeometryResult',
    'RegionStore',
    'WaterMaskFetcher',
]
