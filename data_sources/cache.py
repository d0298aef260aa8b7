"""
Caching system for Terra provider calls
Caches raw geocoding and Overpass responses (never resolved regions)
"""

import time
import hashlib
import os
import json
from typing import Any, Optional, Dict
from functools import wraps
from logging_config import get_logger

logger = get_logger(__name__)

# Redis is only used when REDIS_URL is configured; otherwise in-memory only
_redis_client = None
_redis_url = os.getenv("REDIS_URL")


def _get_redis_client():
    """
    Lazily create the asyncio Redis client.

    Returns:
        Redis client if REDIS_URL is configured, None otherwise
    """
    global _redis_client

    if not _redis_url:
        return None

    if _redis_client is None:
        import redis.asyncio as redis_asyncio
        _redis_client = redis_asyncio.from_url(
            _redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1
        )
    return _redis_client


# In-memory cache (always written, read when Redis misses or is unavailable)
_cache: Dict[str, Any] = {}
_cache_ttl: Dict[str, float] = {}

# Cache TTL settings (in seconds)
CACHE_TTL = {
    'geocoding': 24 * 3600,        # 24 hours for Nominatim responses (stable)
    'water_features': 6 * 3600,    # 6 hours for Overpass water polygons
}


def _generate_cache_key(func_name: str, *args, **kwargs) -> str:
    """Generate a cache key from function name and arguments."""
    args_str = str(args) + str(sorted(kwargs.items()))
    key_hash = hashlib.md5(args_str.encode()).hexdigest()
    return f"{func_name}:{key_hash}"


def cached(ttl_seconds: int = 3600):
    """
    Decorator to cache async function results in Redis (if configured) and memory.

    None results are never cached so failed provider calls are retried next time.

    Args:
        ttl_seconds: Time to live for cached results in seconds
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            cache_key = _generate_cache_key(func.__name__, *args, **kwargs)
            current_time = time.time()

            redis_client = _get_redis_client()
            if redis_client is not None:
                try:
                    cached_data = await redis_client.get(cache_key)
                    if cached_data:
                        logger.debug(f"Redis cache hit for {func.__name__}")
                        return json.loads(cached_data)
                except Exception as e:
                    logger.warning(f"Redis read error, falling back to in-memory: {e}")

            if cache_key in _cache and (current_time - _cache_ttl.get(cache_key, 0)) < ttl_seconds:
                logger.debug(f"Cache hit for {func.__name__}")
                return _cache[cache_key]

            logger.debug(f"Cache miss for {func.__name__} - executing")
            if len(_cache) > 100 and len(_cache) % 100 == 0:
                _cleanup_expired_cache()

            result = await func(*args, **kwargs)

            if result is None:
                logger.debug("Result is None - not caching (allows retry)")
                return result

            if redis_client is not None:
                try:
                    await redis_client.setex(cache_key, ttl_seconds, json.dumps(result))
                except Exception as e:
                    logger.warning(f"Redis write error: {e}")

            _cache[cache_key] = result
            _cache_ttl[cache_key] = current_time
            return result

        return wrapper
    return decorator


async def clear_cache(cache_type: Optional[str] = None):
    """
    Clear cache entries from both Redis (if configured) and in-memory cache.

    Args:
        cache_type: If provided, only clear entries whose key starts with this function name
    """
    redis_client = _get_redis_client()
    if redis_client is not None:
        try:
            pattern = "*" if cache_type is None else f"{cache_type}:*"
            keys = await redis_client.keys(pattern)
            if keys:
                await redis_client.delete(*keys)
        except Exception as e:
            logger.warning(f"Error clearing Redis cache: {e}")

    if cache_type is None:
        _cache.clear()
        _cache_ttl.clear()
        logger.info("Cleared all cache")
    else:
        keys_to_remove = [key for key in _cache.keys() if key.startswith(f"{cache_type}:")]
        for key in keys_to_remove:
            _cache.pop(key, None)
            _cache_ttl.pop(key, None)
        logger.info(f"Cleared {len(keys_to_remove)} {cache_type} cache entries")


def clear_memory_cache():
    """Drop every in-memory entry (Redis untouched)."""
    _cache.clear()
    _cache_ttl.clear()


def _cleanup_expired_cache():
    """Clean up expired entries from in-memory cache to prevent memory bloat."""
    current_time = time.time()
    max_ttl = max(CACHE_TTL.values())

    keys_to_remove = [
        key for key, cache_time in _cache_ttl.items()
        if current_time - cache_time > max_ttl
    ]
    for key in keys_to_remove:
        _cache.pop(key, None)
        _cache_ttl.pop(key, None)

    if keys_to_remove:
        logger.debug(f"Cleaned up {len(keys_to_remove)} expired cache entries")


def get_cache_stats() -> Dict[str, Any]:
    """Get in-memory cache statistics."""
    _cleanup_expired_cache()

    return {
        "total_entries": len(_cache),
        "cache_size_mb": sum(len(str(v)) for v in _cache.values()) / (1024 * 1024),
        "redis_configured": bool(_redis_url),
        "ttl_seconds": dict(CACHE_TTL),
    }
