import pytest

from data_sources import cache


@pytest.fixture(autouse=True)
def isolated_cache(monkeypatch):
    """Every test starts with an empty in-memory cache and no Redis."""
    monkeypatch.setattr(cache, "_redis_url", None)
    monkeypatch.setattr(cache, "_redis_client", None)
    cache.clear_memory_cache()
    yield
    cache.clear_memory_cache()
