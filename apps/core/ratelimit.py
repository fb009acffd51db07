"""
Fixed-window request counters stored in the Django cache.
"""
import logging

from django.core.cache import cache

from .exceptions import RateLimited

logger = logging.getLogger(__name__)


def _key(scope: str, ident: str) -> str:
    return f"ratelimit:{scope}:{ident}"


def hit(scope: str, ident: str, window: int) -> int:
    """Count one hit against scope/ident and return the running total."""
    key = _key(scope, ident)
    cache.add(key, 0, window)
    try:
        return cache.incr(key)
    except ValueError:
        # Key expired between add() and incr()
        cache.set(key, 1, window)
        return 1


def count(scope: str, ident: str) -> int:
    return cache.get(_key(scope, ident), 0)


def reset(scope: str, ident: str) -> None:
    cache.delete(_key(scope, ident))


def enforce(scope: str, ident: str, limit: int, window: int) -> None:
    """
    Count a hit and raise RateLimited once more than `limit` hits fall in `window` seconds.
    """
    total = hit(scope, ident, window)
    if total > limit:
        logger.warning(f"Rate limit exceeded for {scope} ({ident}): {total}/{limit}")
        raise RateLimited(details={"scope": scope, "limit": limit, "window_seconds": window})
