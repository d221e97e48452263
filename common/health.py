"""
common.health
~~~~~~~~~~~~~
GET /health/ – lightweight liveness + readiness probe.

Returns:
    200  {"status": "ok", "db": "ok", "signing": "ok"}          – everything healthy
    503  {"status": "degraded", "db": "error: <msg>", ...}      – DB unreachable
    503  {"status": "degraded", ..., "signing": "unconfigured"} – no preview secret
"""
import structlog
from django.db import connection, OperationalError
from django.http import JsonResponse

from apps.preview.services.preview_session import get_token_codec
from common.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


def health_check(request):
    """Return service health including database and token-signing status."""
    db_status: str
    signing_status: str

    try:
        connection.ensure_connection()
        db_status = "ok"
    except OperationalError as exc:
        db_status = f"error: {exc}"
        logger.error("health_check_db_failure", error=str(exc))

    try:
        get_token_codec()
        signing_status = "ok"
    except ConfigurationError:
        signing_status = "unconfigured"
        logger.error("health_check_signing_unconfigured")

    healthy = db_status == "ok" and signing_status == "ok"
    payload = {
        "status": "ok" if healthy else "degraded",
        "db": db_status,
        "signing": signing_status,
    }
    return JsonResponse(payload, status=200 if healthy else 503)
