import logging
from django.conf import settings
from django.core.cache import cache
from django.db import connection
from django.db.utils import Error as DatabaseError
from ninja import Router, Schema

logger = logging.getLogger(__name__)

router = Router(tags=["Health"])


class HealthOut(Schema):
    status: str
    version: str
    database: str
    cache: str


@router.get("/health", response={200: HealthOut, 503: HealthOut}, auth=None)
def health(request):
    """
    Liveness check. Returns 503 when the database is unreachable; a cache
    outage only degrades the status.
    """
    database = "ok"
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.error(f"Health check database failure: {e}")
        database = "unavailable"

    cache_status = "ok"
    try:
        cache.set("health:ping", "pong", 5)
        if cache.get("health:ping") != "pong":
            cache_status = "unavailable"
    except Exception as e:
        logger.warning(f"Health check cache failure: {e}")
        cache_status = "unavailable"

    if database != "ok":
        status, code = "unhealthy", 503
    elif cache_status != "ok":
        status, code = "degraded", 200
    else:
        status, code = "healthy", 200

    return code, {
        "status": status,
        "version": settings.API_VERSION,
        "database": database,
        "cache": cache_status,
    }
