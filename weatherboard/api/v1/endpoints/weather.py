"""Latest-snapshot endpoint — one reading per city for the display."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from weatherboard.config import settings
from weatherboard.db.session import get_db
from weatherboard.services.display import serialize_reading
from weatherboard.services.snapshot import load_latest_snapshot

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/weather/latest",
    summary="Latest reading per city",
    description=(
        "Returns the most recent reading for every city that has one, sorted by "
        "city name. A storage failure yields an empty list rather than an error."
    ),
)
async def get_latest_weather(
    window_hours: int | None = Query(
        None, ge=1, description="Only consider readings from the last N hours"
    ),
    db: AsyncSession = Depends(get_db),
):
    window = window_hours if window_hours is not None else settings.snapshot_window_hours
    try:
        latest = await load_latest_snapshot(db, window)
    except (OSError, SQLAlchemyError) as exc:
        logger.warning("Snapshot query failed, serving no data: %s", exc)
        latest = {}

    readings = sorted(latest.values(), key=lambda r: r.city.name)
    data = [serialize_reading(r, settings.display_timezone) for r in readings]

    return {
        "timezone": settings.display_timezone,
        "count": len(data),
        "data": data,
    }
