import asyncio
from unittest.mock import patch

from data_sources import nominatim_api
from fakes import FakeResponse, FakeSession, collection, polygon_feature, session_factory


def _run(session, coroutine_factory):
    with patch.object(nominatim_api, "get_session", session_factory(session)):
        return asyncio.run(coroutine_factory())


def test_reverse_geocode_requests_polygon_geojson():
    payload = collection(polygon_feature(display_name="Jakarta"))
    session = FakeSession(FakeResponse(payload))

    result = _run(session, lambda: nominatim_api.reverse_geocode_async(-6.2, 106.8, 14))

    request = session.requests[0]
    assert result == payload
    assert request["url"].endswith("/reverse")
    assert request["params"] == {
        "format": "geojson",
        "polygon_geojson": 1,
        "extratags": 1,
        "zoom": 14,
        "lat": -6.2,
        "lon": 106.8,
    }


def test_reverse_geocode_is_cached():
    payload = collection(polygon_feature())
    session = FakeSession(FakeResponse(payload))

    async def twice():
        first = await nominatim_api.reverse_geocode_async(1.0, 2.0, 12)
        second = await nominatim_api.reverse_geocode_async(1.0, 2.0, 12)
        return first, second

    first, second = _run(session, twice)

    assert first == second == payload
    assert len(session.requests) == 1


def test_coarse_reverse_uses_jsonv2_at_zoom_three():
    session = FakeSession(FakeResponse({"address": {"country": "Indonesia"}}))

    result = _run(session, lambda: nominatim_api.reverse_geocode_coarse_async(-2.0, 118.0))

    assert result["address"]["country"] == "Indonesia"
    assert session.requests[0]["params"]["format"] == "jsonv2"
    assert session.requests[0]["params"]["zoom"] == 3


def test_error_payload_is_none():
    session = FakeSession(FakeResponse({"error": "Unable to geocode"}))
    assert _run(session, lambda: nominatim_api.reverse_geocode_async(0.0, -160.0, 14)) is None


def test_http_error_is_none_and_not_cached():
    session = FakeSession(FakeResponse(status=503, reason="Service Unavailable"), FakeResponse(collection()))

    async def twice():
        first = await nominatim_api.search_geojson_async("Jakarta")
        second = await nominatim_api.search_geojson_async("Jakarta")
        return first, second

    first, second = _run(session, twice)

    assert first is None
    assert second == collection()
    assert session.requests[0]["params"]["limit"] == 1


def test_search_place_returns_first_hit():
    hits = [
        {"lat": "-6.2", "lon": "106.8", "display_name": "Jakarta, Indonesia"},
        {"lat": "0", "lon": "0", "display_name": "Other"},
    ]
    session = FakeSession(FakeResponse(hits))

    result = _run(session, lambda: nominatim_api.search_place_async("Jakarta"))

    params = session.requests[0]["params"]
    assert result["display_name"] == "Jakarta, Indonesia"
    assert params["format"] == "jsonv2"
    assert params["addressdetails"] == 1
    assert params["q"] == "Jakarta"


def test_search_place_without_results():
    session = FakeSession(FakeResponse([]))
    assert _run(session, lambda: nominatim_api.search_place_async("Atlantis")) is None
