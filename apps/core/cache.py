"""
Cache-aside helpers over Django's cache framework.

The cache is never authoritative: a cache error is logged and the read
falls through to the loader (normally a database query).
"""
import logging
from typing import Callable, Optional, TypeVar

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

T = TypeVar('T')


def task_key(task_id) -> str:
    return f"task:{task_id}"


def project_key(project_id) -> str:
    return f"project:{project_id}"


def user_key(user_id) -> str:
    return f"user:{user_id}"


def get_or_set(key: str, loader: Callable[[], Optional[T]], ttl: Optional[int] = None) -> Optional[T]:
    """
    Return the cached value for `key`, or load, store and return it.

    `None` results are not cached so a missing row is re-checked next time.
    """
    try:
        cached = cache.get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        cached = None

    if cached is not None:
        return cached

    value = loader()
    if value is not None:
        try:
            cache.set(key, value, ttl if ttl is not None else settings.CACHE_TTL)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
    return value


def invalidate(*keys: str) -> None:
    if not keys:
        return
    try:
        cache.delete_many(list(keys))
    except Exception as e:
        logger.warning(f"Cache invalidation failed for {keys}: {e}")
