"""
Caching helpers for frequently read, rarely written lookups
(shift configuration, package sizes).
Uses Redis in production via django-redis.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
SHIFT_CONFIG_CACHE_TTL = 900  # 15 minutes
PACKAGE_SIZES_CACHE_TTL = 600  # 10 minutes


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive lookups

    Usage:
        @cached_query(cache_ttl=120, key_prefix="package_sizes")
        def load_package_sizes():
            return [...]
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result

        wrapper.cache_key = lambda *a, **kw: make_cache_key(key_prefix, *a, **kw)
        return wrapper
    return decorator
