"""
Urban development planning grid
Splits a bounding box into cells and rates each cell for development from its
climate metrics: urban risk score, habitability, suggested development type,
developable area and population capacity.
"""

import asyncio
import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional

from regions.models import BoundingBox
from regions.risk_scoring import Habitability, calculate_urban_risk_score, get_habitability
from logging_config import get_logger

logger = get_logger(__name__)

CELL_TIMEOUT_SECONDS = 5.0
CELL_DELAY_SECONDS = 0.5
KM_PER_DEGREE = 111.32

# Share of a cell that can be built on
DEVELOPMENT_RATIO = {
    Habitability.EXCELLENT: 0.8,
    Habitability.GOOD: 0.6,
    Habitability.MODERATE: 0.4,
    Habitability.POOR: 0.2,
    Habitability.CRITICAL: 0.05,
}

# People per developable km²
BASE_DENSITY = {
    Habitability.EXCELLENT: 12000,
    Habitability.GOOD: 8000,
    Habitability.MODERATE: 5000,
    Habitability.POOR: 2000,
    Habitability.CRITICAL: 500,
}

GRID_COLORS = {
    Habitability.EXCELLENT: '#00ff00',
    Habitability.GOOD: '#90ff00',
    Habitability.MODERATE: '#ffff00',
    Habitability.POOR: '#ff9900',
    Habitability.CRITICAL: '#ff0000',
}


class DevelopmentType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    MIXED = "mixed"
    INDUSTRIAL = "industrial"
    CONSERVATION = "conservation"


@dataclass
class GridCell:
    id: str
    row: int
    col: int
    bounds: BoundingBox
    center_lat: float
    center_lng: float
    temperature: float
    air_quality: float
    flood_risk: float
    urban_risk_score: int
    habitability: Habitability
    development_type: DevelopmentType
    area_km2: float
    population: int
    color: str

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["bounds"] = list(self.bounds)
        data["habitability"] = self.habitability.value
        data["development_type"] = self.development_type.value
        return data


def calculate_development_metrics(habitability: Habitability, cell_area_km2: float) -> Dict:
    """
    Developable area (km², 2 dp) and population capacity for a cell.

    Example:
        calculate_development_metrics(Habitability.GOOD, 10) == {"area_km2": 6.0, "population": 48000}
    """
    developable_area = cell_area_km2 * DEVELOPMENT_RATIO[habitability]
    return {
        "area_km2": math.floor(developable_area * 100 + 0.5) / 100,
        "population": int(math.floor(developable_area * BASE_DENSITY[habitability] + 0.5)),
    }


def get_development_type(habitability: Habitability, temperature: float, flood_risk: float) -> DevelopmentType:
    if habitability == Habitability.CRITICAL or flood_risk > 80:
        return DevelopmentType.CONSERVATION
    if habitability == Habitability.POOR:
        return DevelopmentType.INDUSTRIAL
    if habitability == Habitability.MODERATE and temperature > 30:
        return DevelopmentType.COMMERCIAL
    if habitability in (Habitability.EXCELLENT, Habitability.GOOD):
        return DevelopmentType.RESIDENTIAL
    return DevelopmentType.MIXED


def get_grid_color(habitability: Habitability) -> str:
    return GRID_COLORS[habitability]


def cell_area_km2(bounds: BoundingBox) -> float:
    """Approximate area of a small lat/lng box."""
    south, west, north, east = bounds
    mid_lat = math.radians((south + north) / 2)
    height = (north - south) * KM_PER_DEGREE
    width = (east - west) * KM_PER_DEGREE * math.cos(mid_lat)
    return abs(height * width)


def split_bounds(bounds: BoundingBox, rows: int, cols: int) -> List[Dict]:
    """Row-major list of {"row", "col", "bounds"} cells covering bounds."""
    if rows < 1 or cols < 1:
        raise ValueError(f"Grid needs at least one row and column, got {rows}x{cols}")

    south, west, north, east = bounds
    lat_step = (north - south) / rows
    lng_step = (east - west) / cols
    cells = []
    for row in range(rows):
        for col in range(cols):
            cell_south = south + row * lat_step
            cell_west = west + col * lng_step
            cells.append({
                "row": row,
                "col": col,
                "bounds": (cell_south, cell_west, cell_south + lat_step, cell_west + lng_step),
            })
    return cells


def build_grid_cell(row: int, col: int, bounds: BoundingBox, metrics: Dict[str, Optional[float]]) -> Optional[GridCell]:
    """Rate one cell; None when any metric is unknown."""
    temperature = metrics.get("temperature")
    air_quality = metrics.get("air_quality")
    flood_risk = metrics.get("flood_risk")
    if None in (temperature, air_quality, flood_risk):
        return None

    score = calculate_urban_risk_score(temperature, air_quality, flood_risk)
    habitability = get_habitability(score)
    development = calculate_development_metrics(habitability, cell_area_km2(bounds))
    south, west, north, east = bounds

    return GridCell(
        id=f"cell-{row}-{col}",
        row=row,
        col=col,
        bounds=bounds,
        center_lat=(south + north) / 2,
        center_lng=(west + east) / 2,
        temperature=temperature,
        air_quality=air_quality,
        flood_risk=flood_risk,
        urban_risk_score=score,
        habitability=habitability,
        development_type=get_development_type(habitability, temperature, flood_risk),
        area_km2=development["area_km2"],
        population=development["population"],
        color=get_grid_color(habitability),
    )


async def generate_planning_grid(bounds: BoundingBox, rows: int, cols: int, fetch_metrics,
                                 cell_timeout: float = CELL_TIMEOUT_SECONDS,
                                 cell_delay: float = CELL_DELAY_SECONDS) -> List[GridCell]:
    """
    Rate every cell of a rows x cols grid over bounds.

    Cells are fetched one at a time (the metric services are rate limited),
    each bounded by cell_timeout, with cell_delay between requests. Cells
    that time out or come back incomplete are skipped.
    """
    cells = []
    layout = split_bounds(bounds, rows, cols)

    for index, cell in enumerate(layout):
        if index and cell_delay:
            await asyncio.sleep(cell_delay)

        south, west, north, east = cell["bounds"]
        center_lat, center_lng = (south + north) / 2, (west + east) / 2
        try:
            metrics = await asyncio.wait_for(fetch_metrics(center_lat, center_lng), timeout=cell_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Grid cell {cell['row']}-{cell['col']} timed out after {cell_timeout}s",
                           extra={"lat": center_lat, "lon": center_lng})
            continue

        grid_cell = build_grid_cell(cell["row"], cell["col"], cell["bounds"], metrics or {})
        if grid_cell is None:
            logger.info(f"Skipping grid cell {cell['row']}-{cell['col']}: incomplete metrics",
                        extra={"lat": center_lat, "lon": center_lng})
            continue
        cells.append(grid_cell)

    logger.info(f"Generated planning grid with {len(cells)}/{len(layout)} cells")
    return cells
