"""
Caching utilities for expensive queries.

Keys are namespaced: each namespace carries a generation counter, and
invalidating a namespace bumps the counter so every key built before the bump
is never read again. This works the same on Redis (django-redis) and on the
local memory backend used in development and tests.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
CUSTOMER_LIST_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

NAMESPACE_VERSION_PREFIX = 'ns_version:'


def get_namespace_version(namespace):
    """Current generation of a cache namespace (starts at 1)"""
    version_key = f"{NAMESPACE_VERSION_PREFIX}{namespace}"
    version = cache.get(version_key)
    if version is None:
        cache.add(version_key, 1, None)
        version = cache.get(version_key) or 1
    return version


def invalidate_namespace(namespace):
    """Invalidate every key of a namespace by bumping its generation"""
    version_key = f"{NAMESPACE_VERSION_PREFIX}{namespace}"
    try:
        cache.incr(version_key)
    except ValueError:
        # Key missing or evicted: any fresh generation invalidates old keys
        cache.set(version_key, 2, None)
    logger.debug(f"Invalidated cache namespace: {namespace}")


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique, versioned cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{get_namespace_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="reports")
        def get_expensive_data(date_from, date_to):
            # expensive query here
            return data
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
        return wrapper
    return decorator


def invalidate_reports_cache():
    """Invalidate dashboard and analytics cache"""
    invalidate_namespace("reports")
