from regions.models import Coordinate, HighlightCircle, OverlayMetrics, OverlayType, RegionData
from regions.overlay import (
    OVERLAY_LEGENDS,
    OverlayStateProjector,
    build_region_cards,
    overlay_fill_color,
    project_overlay_state,
)
from regions.store import RegionStore
from fakes import collection, polygon_feature


HOT_CITY = OverlayMetrics(temperature=36.0, air_quality=210.0, flood_risk=90.0)


def _store_with_geometry(metrics=HOT_CITY):
    store = RegionStore()
    token = store.begin_selection(RegionData(name="Jakarta", lat=-6.2, lng=106.8))
    store.set_geometry(token, collection(polygon_feature()), (0, 0, 1, 1))
    if metrics:
        store.set_metrics(token, metrics.to_dict())
    return store, token


def test_fill_color_per_overlay():
    assert overlay_fill_color(HOT_CITY, OverlayType.TEMPERATURE) == '#f97316'
    assert overlay_fill_color(HOT_CITY, OverlayType.AIR_QUALITY) == '#dc2626'
    assert overlay_fill_color(HOT_CITY, OverlayType.FLOOD) == '#dc2626'


def test_combined_overlay_uses_combined_score():
    # combined score 50 -> moderate
    metrics = OverlayMetrics(temperature=25.0, air_quality=100.0, flood_risk=50.0)
    assert overlay_fill_color(metrics, OverlayType.COMBINED) == '#eab308'
    assert overlay_fill_color(metrics, "combined") == '#eab308'


def test_no_fill_without_metrics_or_overlay():
    assert overlay_fill_color(None, OverlayType.TEMPERATURE) is None
    assert overlay_fill_color(HOT_CITY, OverlayType.NONE) is None


def test_unknown_metric_is_not_painted_low():
    metrics = OverlayMetrics(temperature=None, air_quality=40.0, flood_risk=10.0)
    assert overlay_fill_color(metrics, OverlayType.TEMPERATURE) is None
    assert overlay_fill_color(metrics, OverlayType.COMBINED) is None
    assert overlay_fill_color(metrics, OverlayType.AIR_QUALITY) == '#22c55e'


def test_legend_requires_real_geometry():
    store, _ = _store_with_geometry()
    state = project_overlay_state(store, OverlayType.FLOOD)
    assert state.has_geometry
    assert state.legend == OVERLAY_LEGENDS[OverlayType.FLOOD]

    circle_store = RegionStore()
    token = circle_store.begin_selection(RegionData(name="Sea", lat=0, lng=-160))
    circle_store.set_highlight(token, HighlightCircle(Coordinate(0, -160), 10000.0))
    circle_store.set_metrics(token, HOT_CITY.to_dict())

    circle_state = project_overlay_state(circle_store, OverlayType.FLOOD)
    assert not circle_state.has_geometry
    assert circle_state.legend is None
    assert circle_state.fill_color == '#dc2626'


def test_legend_hidden_without_metrics_or_overlay():
    store, _ = _store_with_geometry(metrics=None)
    assert project_overlay_state(store, OverlayType.FLOOD).legend is None

    store, _ = _store_with_geometry()
    assert project_overlay_state(store, OverlayType.NONE).legend is None


def test_legends_have_four_tiers_each():
    assert set(OVERLAY_LEGENDS) == {
        OverlayType.TEMPERATURE, OverlayType.AIR_QUALITY, OverlayType.FLOOD, OverlayType.COMBINED,
    }
    for legend in OVERLAY_LEGENDS.values():
        assert [entry["tier"] for entry in legend["entries"]] == ["low", "moderate", "high", "critical"]
    assert OVERLAY_LEGENDS[OverlayType.COMBINED]["title"] == "Composite Climate Risk"


def test_projector_pushes_only_on_change():
    store = RegionStore()
    pushed = []
    projector = OverlayStateProjector(store, pushed.append, active_overlay=OverlayType.TEMPERATURE)
    assert len(pushed) == 1

    token = store.begin_selection(RegionData(name="Jakarta", lat=-6.2, lng=106.8))
    # clearing an already-empty store changes nothing visible
    assert len(pushed) == 1

    store.set_geometry(token, collection(polygon_feature()), (0, 0, 1, 1))
    assert pushed[-1].has_geometry
    count = len(pushed)

    store.set_water_geometry(token, collection(polygon_feature()))
    assert len(pushed) == count

    store.set_metrics(token, HOT_CITY.to_dict())
    assert pushed[-1].fill_color == '#f97316'
    assert pushed[-1].legend["title"] == "Temperature Risk Levels"

    projector.set_active_overlay(OverlayType.AIR_QUALITY)
    assert pushed[-1].fill_color == '#dc2626'

    projector.close()
    store.begin_selection(RegionData(name="Other", lat=0, lng=0))
    assert pushed[-1].has_geometry


def test_region_cards():
    region = RegionData(name="Jakarta", lat=-6.2, lng=106.8, temperature=31.5, air_quality=87.0, flood_risk=62.0)

    cards = build_region_cards(region, OverlayType.FLOOD)

    assert [card["title"] for card in cards] == ["Temperature", "Air Quality Index", "Flood Risk", "Combined Risk"]
    assert [card["value"] for card in cards] == ["31.5°C", "87", "62%", "58"]
    assert [card["tier"] for card in cards] == ["high", "moderate", "high", "high"]
    assert [card["active"] for card in cards] == [False, False, True, False]


def test_region_cards_unknown_values():
    region = RegionData(name="Nowhere", lat=0, lng=0, temperature=24.0)

    cards = build_region_cards(region)

    assert [card["value"] for card in cards] == ["24°C", "Not Found", "Not Found", "N/A"]
    assert cards[1]["tier"] is None
    assert cards[3]["color"] is None
