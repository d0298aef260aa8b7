"""Fake aiohttp objects and GeoJSON builders shared by the tests."""


class FakeResponse:
    """Stands in for an aiohttp response used as `async with session.get(...)`."""

    def __init__(self, payload=None, status=200, reason="OK"):
        self.payload = payload
        self.status = status
        self.reason = reason

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type="application/json"):
        return self.payload


class FakeSession:
    """Records requests and replays queued FakeResponses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def _next(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def get(self, url, params=None, **kwargs):
        return self._next("GET", url, params=params, **kwargs)

    def post(self, url, data=None, json=None, **kwargs):
        return self._next("POST", url, data=data, json=json, **kwargs)


def session_factory(session):
    async def get_session():
        return session
    return get_session


def polygon_feature(west=0.0, south=0.0, east=1.0, north=1.0, **properties):
    ring = [[west, south], [east, south], [east, north], [west, north], [west, south]]
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def point_feature(lon=0.5, lat=0.5, **properties):
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
    }


def collection(*features, **extra):
    return {"type": "FeatureCollection", "features": list(features), **extra}


class FakeResolver:
    """GeometryResolver stand-in returning a fixed result."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    async def resolve(self, lat, lng, properties=None, fallback_bounds=None):
        self.calls.append({"lat": lat, "lng": lng, "properties": properties, "fallback_bounds": fallback_bounds})
        return self.result


class FakeWaterMask:
    def __init__(self, response=None):
        self.response = response
        self.calls = []

    async def fetch(self, bounds):
        self.calls.append(bounds)
        return self.response
