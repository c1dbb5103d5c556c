import logging

from django.core.cache import cache
from django.core.files.storage import default_storage
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _check_db():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def _check_cache():
    # Same Redis instance backs the Celery broker in deployment
    cache.set("health:ping", "pong", timeout=5)
    if cache.get("health:ping") != "pong":
        raise RuntimeError("cache round-trip failed")


def _check_storage():
    # Receipts and downloads read purchased files from here
    default_storage.exists("health-check")


CHECKS = {
    "db": _check_db,
    "cache": _check_cache,
    "storage": _check_storage,
}


def health_check(request):
    components = {}
    for name, check in CHECKS.items():
        try:
            check()
            components[name] = "ok"
        except Exception as e:
            logger.error(f"Health check '{name}' failed: {e}")
            components[name] = "error"

    healthy = all(state == "ok" for state in components.values())
    return JsonResponse(
        {"status": "ok" if healthy else "error", "components": components},
        status=200 if healthy else 503,
    )
