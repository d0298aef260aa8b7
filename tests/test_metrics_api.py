import asyncio
from unittest.mock import patch

from data_sources import metrics_api
from fakes import FakeResponse, session_factory


class RoutingSession:
    """Answers POSTs by endpoint name so concurrent fetches stay deterministic."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []
        self.closed = False

    def post(self, url, json=None, **kwargs):
        self.requests.append({"url": url, "json": json})
        endpoint = url.rsplit("/", 1)[-1]
        return self.routes[endpoint]


def _fetch(routes, lat=-6.2, lng=106.8):
    session = RoutingSession(routes)
    with patch.object(metrics_api, "get_session", session_factory(session)):
        return asyncio.run(metrics_api.fetch_region_metrics_async(lat, lng)), session


def test_all_metrics_fetched():
    metrics, session = _fetch({
        "temperature": FakeResponse({"data": {"currentTemp": 31.5}}),
        "air-quality": FakeResponse({"data": {"currentAQI": 87}}),
        "flood": FakeResponse({"data": {"overallRisk": 62}}),
    })

    assert metrics == {"temperature": 31.5, "air_quality": 87.0, "flood_risk": 62.0}
    assert {r["url"].rsplit("/", 1)[-1] for r in session.requests} == {"temperature", "air-quality", "flood"}
    assert all(r["json"] == {"lat": -6.2, "lng": 106.8} for r in session.requests)


def test_one_failure_only_blanks_that_metric():
    metrics, _ = _fetch({
        "temperature": FakeResponse({"data": {"currentTemp": 22}}),
        "air-quality": FakeResponse(status=500, reason="Internal Server Error"),
        "flood": FakeResponse({"data": {"overallRisk": 0}}),
    })

    assert metrics == {"temperature": 22.0, "air_quality": None, "flood_risk": 0.0}


def test_malformed_values_are_unknown():
    metrics, _ = _fetch({
        "temperature": FakeResponse({"data": {"currentTemp": "hot"}}),
        "air-quality": FakeResponse({"data": {}}),
        "flood": FakeResponse({"data": {"overallRisk": float("nan")}}),
    })

    assert metrics == {"temperature": None, "air_quality": None, "flood_risk": None}


def test_extract_metric():
    assert metrics_api._extract_metric({"data": {"currentAQI": 50}}, "currentAQI") == 50.0
    assert metrics_api._extract_metric({"data": {"currentAQI": True}}, "currentAQI") is None
    assert metrics_api._extract_metric(None, "currentAQI") is None
    assert metrics_api._extract_metric({"data": []}, "currentAQI") is None
