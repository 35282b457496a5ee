from fastapi import APIRouter

from app.config import settings
from app.core.observability import uptime_seconds, utc_now_iso

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Healthcheck")
def healthcheck() -> dict:
    """Liveness of the inquiry API process.

    Served at `{api_prefix}/health` and, unprefixed, at `/health` and
    `/healthz` for load balancers. It does not touch the database.
    """

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
