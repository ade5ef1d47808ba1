"""Latest-snapshot read path: reduce weather_readings to one reading per city.

The reduction runs in application code over the joined rows. That is fine for
tens of cities and a 7-day window; bound the query with *window_hours* if the
table grows.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from weatherboard.models.reading import WeatherReading

logger = logging.getLogger(__name__)


def latest_per_city(readings: Iterable[WeatherReading]) -> dict[int, WeatherReading]:
    """Return the reading with the greatest ``recorded_at`` for each city_id.

    Input order is irrelevant. A held candidate is only replaced by a strictly
    newer reading, so on equal timestamps the first one seen wins. Cities with
    no readings are absent from the result.
    """
    latest: dict[int, WeatherReading] = {}
    for reading in readings:
        held = latest.get(reading.city_id)
        if held is None or reading.recorded_at > held.recorded_at:
            latest[reading.city_id] = reading
    return latest


async def load_readings(
    db: AsyncSession, since: datetime | None = None
) -> list[WeatherReading]:
    """All readings (optionally only those at or after *since*) with their City loaded."""
    stmt = select(WeatherReading).options(joinedload(WeatherReading.city))
    if since is not None:
        stmt = stmt.where(WeatherReading.recorded_at >= since)
    stmt = stmt.order_by(WeatherReading.recorded_at.desc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def load_latest_snapshot(
    db: AsyncSession, window_hours: int | None = None
) -> dict[int, WeatherReading]:
    since = None
    if window_hours is not None:
        try:
            since = datetime.now(timezone.utc) - timedelta(hours=window_hours)
        except OverflowError:
            # Window reaches past datetime.min, so nothing is excluded
            since = None

    readings = await load_readings(db, since)
    latest = latest_per_city(readings)
    logger.info("Reduced %d readings to %d cities", len(readings), len(latest))
    return latest
