import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from weatherboard.config import settings
from weatherboard.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/status",
    summary="Service status",
    description="Returns service version, database connection status and effective configuration.",
)
async def get_status(db: AsyncSession = Depends(get_db)):
    # ── DB liveness ────────────────────────────────────────────────────────────
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("DB health check failed: %s", exc)
        db_status = "error"

    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "db": db_status,
        "provider_configured": bool(settings.openweather_api_key),
        "config": {
            "retention_days": settings.retention_days,
            "ingest_interval_minutes": settings.ingest_interval_minutes,
            "ingest_strict_mode": settings.ingest_strict_mode,
            "display_timezone": settings.display_timezone,
            "snapshot_window_hours": settings.snapshot_window_hours,
        },
    }
