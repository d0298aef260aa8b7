import asyncio

from data_sources.error_handling import ProviderError
from regions.resolver import GeometryResolver
from fakes import collection, point_feature, polygon_feature


class FakeNominatim:
    """Scripted geocoder that records the order of every call."""

    def __init__(self, reverse=None, coarse=None, search=None):
        self.reverse_responses = reverse or {}
        self.coarse_response = coarse
        self.search_responses = search or {}
        self.calls = []

    async def reverse(self, lat, lon, zoom):
        self.calls.append(("reverse", zoom))
        response = self.reverse_responses.get(zoom)
        if isinstance(response, Exception):
            raise response
        return response

    async def coarse(self, lat, lon):
        self.calls.append(("coarse", 3))
        return self.coarse_response

    async def search(self, query):
        self.calls.append(("search", query))
        return self.search_responses.get(query)

    def resolver(self):
        return GeometryResolver(
            reverse_geocode=self.reverse,
            reverse_geocode_coarse=self.coarse,
            search_geojson=self.search,
        )


def test_first_polygon_stops_the_cascade():
    geocoder = FakeNominatim(reverse={
        14: collection(point_feature(address={"city": "Bandung"})),
        12: collection(polygon_feature(address={"city": "Bandung"}), bbox=[107.5, -7.0, 107.7, -6.8]),
    })

    result = asyncio.run(geocoder.resolver().resolve(-6.9, 107.6))

    assert result.success
    assert result.country_name == "Bandung"
    assert result.bounds == (-7.0, 107.5, -6.8, 107.7)
    assert result.geometry["features"][0]["geometry"]["type"] == "Polygon"
    assert geocoder.calls == [("reverse", 14), ("reverse", 12)]


def test_cascade_order_then_forward_search():
    point_only = collection(point_feature(address={"village": "Cibodas"}))
    geocoder = FakeNominatim(
        reverse={14: point_only, 12: point_only, 10: point_only, 8: point_only},
        search={"Cibodas": collection(polygon_feature(name="Cibodas"))},
    )

    result = asyncio.run(geocoder.resolver().resolve(-6.75, 107.0))

    assert geocoder.calls == [
        ("reverse", 14), ("reverse", 12), ("reverse", 10), ("reverse", 8), ("search", "Cibodas"),
    ]
    assert result.success
    assert result.source == "search"


def test_first_non_empty_name_wins():
    geocoder = FakeNominatim(
        reverse={
            14: collection(point_feature()),
            12: collection(point_feature(address={"town": "Bogor"})),
            10: collection(point_feature(address={"county": "Jawa Barat"})),
        },
        search={"Bogor": collection(polygon_feature())},
    )

    result = asyncio.run(geocoder.resolver().resolve(-6.6, 106.8))

    assert result.country_name == "Bogor"
    assert ("search", "Bogor") in geocoder.calls


def test_search_bbox_becomes_rectangle():
    geocoder = FakeNominatim(
        reverse={10: collection(point_feature(address={"city": "Depok"}))},
        search={"Depok": collection(point_feature(), bbox=[106.7, -6.5, 106.9, -6.3])},
    )

    result = asyncio.run(geocoder.resolver().resolve(-6.4, 106.8, properties={"name": "Location (-6.4000, 106.8000)"}))

    feature = result.geometry["features"][0]
    ring = feature["geometry"]["coordinates"][0]
    assert result.success
    assert result.source == "search:bounds"
    assert result.bounds == (-6.5, 106.7, -6.3, 106.9)
    assert ring[0] == ring[-1]
    assert feature["properties"]["name"] == "Depok"


def test_reverse_bbox_used_when_search_has_none():
    geocoder = FakeNominatim(
        reverse={14: collection(point_feature(address={"city": "Bekasi"}, boundingbox=["-6.4", "-6.1", "106.9", "107.1"]))},
        search={"Bekasi": collection()},
    )

    result = asyncio.run(geocoder.resolver().resolve(-6.2, 107.0))

    assert result.success
    assert result.bounds == (-6.4, 106.9, -6.1, 107.1)


def test_coarse_country_fallback_when_no_name():
    geocoder = FakeNominatim(
        coarse={"address": {"country": "Indonesia"}, "display_name": "Indonesia"},
        search={"Indonesia": collection(polygon_feature(95, -11, 141, 6))},
    )

    result = asyncio.run(geocoder.resolver().resolve(-2.0, 118.0))

    assert geocoder.calls[-2:] == [("coarse", 3), ("search", "Indonesia")]
    assert result.success
    assert result.country_name == "Indonesia"


def test_coarse_not_used_when_name_known():
    geocoder = FakeNominatim(reverse={8: collection(point_feature(address={"state": "Banten"}))})

    asyncio.run(geocoder.resolver().resolve(-6.3, 106.1))

    assert ("coarse", 3) not in geocoder.calls


def test_provider_errors_move_cascade_along():
    geocoder = FakeNominatim(reverse={
        14: ProviderError("boom", "nominatim", 503),
        12: asyncio.TimeoutError(),
        10: collection(polygon_feature(address={"city": "Serang"})),
    })

    result = asyncio.run(geocoder.resolver().resolve(-6.1, 106.15))

    assert result.success
    assert result.source == "reverse:10"


def test_total_failure_is_not_an_exception():
    geocoder = FakeNominatim()

    result = asyncio.run(geocoder.resolver().resolve(0.0, -160.0, fallback_bounds=None))

    assert not result.success
    assert result.geometry is None
    assert result.country_name is None
    assert [call[0] for call in geocoder.calls] == ["reverse"] * 4 + ["coarse"]


def test_resolve_by_name_without_name():
    result = asyncio.run(FakeNominatim().resolver().resolve_by_name(None))
    assert not result.success


def test_resolve_by_name_failed_request_is_not_success_even_with_fallback_bounds():
    geocoder = FakeNominatim()
    result = asyncio.run(geocoder.resolver().resolve_by_name("Nowhere", fallback_bounds=(0, 0, 1, 1)))
    assert not result.success
    assert result.bounds == (0, 0, 1, 1)


def test_polygon_only_at_coarsest_zoom():
    point_only = collection(point_feature(address={"city": "Tangerang"}))
    geocoder = FakeNominatim(reverse={
        14: point_only,
        12: point_only,
        10: point_only,
        8: collection(polygon_feature(address={"state": "Banten"})),
    })

    result = asyncio.run(geocoder.resolver().resolve(-6.2, 106.6))

    assert geocoder.calls == [("reverse", 14), ("reverse", 12), ("reverse", 10), ("reverse", 8)]
    assert result.success
    assert result.source == "reverse:8"
    assert result.country_name == "Tangerang"


def test_malformed_polygon_does_not_end_the_cascade():
    broken = {"type": "Feature", "properties": {}, "geometry": {"type": "Polygon", "coordinates": 5}}
    geocoder = FakeNominatim(reverse={
        14: collection(broken),
        12: collection(polygon_feature(address={"city": "Cilegon"})),
    })

    result = asyncio.run(geocoder.resolver().resolve(-6.0, 106.0))

    assert result.source == "reverse:12"
    assert geocoder.calls == [("reverse", 14), ("reverse", 12)]
