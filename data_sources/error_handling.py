"""
Error handling and fallback mechanisms for Terra provider clients
Provides graceful degradation when geocoding, Overpass or metric APIs fail
"""

import os
import asyncio
from typing import Any, Optional, Dict, Callable
from functools import wraps

from logging_config import get_logger

logger = get_logger(__name__)


class TerraError(Exception):
    """Base exception for Terra errors."""
    pass


class ProviderError(TerraError):
    """Exception for provider (HTTP API) errors."""
    def __init__(self, message: str, api_name: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.api_name = api_name
        self.status_code = status_code


def check_provider_configuration() -> Dict[str, Any]:
    """
    Report which provider endpoints are configured.

    Returns:
        Dict mapping provider names to their configured endpoint (or default marker)
    """
    return {
        "nominatim": os.getenv("NOMINATIM_URL") or "default",
        "overpass": os.getenv("OVERPASS_URL") or "default",
        "metrics": os.getenv("TERRA_METRICS_URL") or "default",
        "redis": bool(os.getenv("REDIS_URL")),
    }


def with_fallback(fallback_value: Any, log_error: bool = True):
    """
    Decorator to provide fallback values when async functions fail.

    Args:
        fallback_value: Value to return if function fails
        log_error: Whether to log the error
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if log_error:
                    logger.warning(f"Function {func.__name__} failed: {e}. Using fallback.")
                return fallback_value
        return wrapper
    return decorator


def safe_api_call(api_name: str):
    """
    Decorator for async provider calls: failures are logged and become None.

    Every provider here is optional; callers treat None as "unknown".

    Args:
        api_name: Name of the API being called
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ProviderError as e:
                logger.warning(f"API error in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "error_type": "provider_error",
                })
                return None
            except Exception as e:
                logger.error(f"Unexpected error in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "error_type": type(e).__name__,
                })
                return None
        return wrapper
    return decorator


def handle_api_timeout(timeout_seconds: float = 30):
    """
    Decorator to bound an async API call with asyncio.wait_for.

    Args:
        timeout_seconds: Timeout in seconds
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Function {func.__name__} timed out after {timeout_seconds}s")
                raise ProviderError(f"Request timed out after {timeout_seconds} seconds", func.__name__, 408)
        return wrapper
    return decorator


def raise_for_provider_status(api_name: str, status: int, reason: Optional[str] = None) -> None:
    """Raise ProviderError for any non-2xx provider response."""
    if 200 <= status < 300:
        return
    raise ProviderError(f"{api_name} request failed: {status} {reason or ''}".strip(), api_name, status)
