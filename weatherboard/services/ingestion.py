"""Weather ingestion job.

One cycle:  list cities → fetch + normalize + upsert per city (concurrently) → retention sweep

Per-city failures are logged and skipped; the cycle still succeeds with the
remaining cities. Each city commits in its own session, so writes that
finished before a caller abandons the cycle stay committed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weatherboard.config import settings
from weatherboard.errors import (
    EmptyCityList,
    IngestionFailed,
    ProviderFetchError,
    RetentionSweepError,
    StorageFatalError,
    StorageReadFatalError,
    StorageWriteError,
)
from weatherboard.models.city import City
from weatherboard.models.reading import WeatherReading
from weatherboard.services.normalizer import normalize_reading
from weatherboard.services.provider import fetch_current_weather

logger = logging.getLogger(__name__)

_KEY_COLUMNS = ("city_id", "recorded_at")

# Dialects offering INSERT … ON CONFLICT DO UPDATE
_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class IngestionResult:
    attempted: int
    succeeded: int
    recorded_at: datetime
    retention_days: int
    failed_city_ids: list[int] = field(default_factory=list)
    cleaned_up: int | None = None  # None → sweep failed

    @property
    def message(self) -> str:
        return f"Weather data updated successfully for {self.succeeded} cities"

    @property
    def maintenance(self) -> str | None:
        if self.cleaned_up is None:
            return None
        return (
            f"Cleaned up {self.cleaned_up} readings older than {self.retention_days} days"
        )

    def as_dict(self) -> dict:
        body = {
            "message": self.message,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed_city_ids": self.failed_city_ids,
            "recorded_at": self.recorded_at.isoformat(),
        }
        if self.maintenance is not None:
            body["maintenance"] = self.maintenance
        return body


# ── Storage access ─────────────────────────────────────────────────────────────

async def list_cities(session: AsyncSession) -> list[City]:
    try:
        result = await session.execute(select(City).order_by(City.id))
        return list(result.scalars().all())
    except SQLAlchemyError as exc:
        raise StorageReadFatalError(f"Cannot list cities: {exc}") from exc


async def upsert_reading(session: AsyncSession, row: dict) -> None:
    """Insert *row*, or replace every non-key column if (city_id, recorded_at) exists.

    A single INSERT … ON CONFLICT DO UPDATE statement, so concurrent cycles
    never observe a half-written row.
    """
    dialect = session.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise StorageWriteError(
            row["city_id"], row["recorded_at"], f"no upsert support for dialect '{dialect}'"
        )

    stmt = insert(WeatherReading).values(row)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(_KEY_COLUMNS),
        set_={col: stmt.excluded[col] for col in row if col not in _KEY_COLUMNS},
    )
    try:
        await session.execute(stmt)
        await session.commit()
    except (OSError, SQLAlchemyError) as exc:
        await session.rollback()
        raise StorageWriteError(row["city_id"], row["recorded_at"], str(exc)) from exc


async def sweep_old_readings(
    session: AsyncSession, now: datetime, retention_days: int
) -> int:
    """Delete readings recorded before *now* − *retention_days*. Returns the row count."""
    cutoff = now - timedelta(days=retention_days)
    try:
        result = await session.execute(
            delete(WeatherReading)
            .where(WeatherReading.recorded_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except (OSError, SQLAlchemyError) as exc:
        await session.rollback()
        raise RetentionSweepError(f"Cleanup before {cutoff.isoformat()} failed: {exc}") from exc

    deleted = result.rowcount or 0
    logger.info("Retention sweep removed %d readings older than %s", deleted, cutoff.isoformat())
    return deleted


# ── Per-city operation ─────────────────────────────────────────────────────────

async def _ingest_city(
    session_factory: async_sessionmaker[AsyncSession],
    client: httpx.AsyncClient,
    city: City,
    recorded_at: datetime,
) -> Exception | None:
    """Fetch and persist one city. Returns the recovered error, or None on success."""
    try:
        try:
            payload = await fetch_current_weather(client, city.latitude, city.longitude)
        except ProviderFetchError as exc:
            raise ProviderFetchError(exc.reason, city.id) from exc

        row = normalize_reading(payload, city.id, recorded_at)

        try:
            async with session_factory() as session:
                await upsert_reading(session, row)
        except (OSError, SQLAlchemyError) as exc:
            # Connection-level failures can surface outside the statement itself
            raise StorageWriteError(city.id, recorded_at, repr(exc)) from exc

    except ProviderFetchError as exc:
        logger.warning("Skipping %s (city_id=%d): %s", city.name, city.id, exc.reason)
        return exc
    except StorageWriteError as exc:
        logger.warning("Skipping %s: %s", city.name, exc)
        return exc

    logger.info("Saved weather for %s (city_id=%d)", city.name, city.id)
    return None


# ── Entry point ────────────────────────────────────────────────────────────────

async def run_ingestion(
    session_factory: async_sessionmaker[AsyncSession],
    client: httpx.AsyncClient,
    now: datetime | None = None,
    strict: bool | None = None,
) -> IngestionResult:
    """Run one ingestion cycle.

    Every city in the cycle shares one ``recorded_at`` (*now*, UTC), so
    re-running a cycle for the same instant collapses onto the same rows.

    Raises:
        StorageReadFatalError: the city list could not be read.
        EmptyCityList: no cities are registered.
        StorageFatalError: every city failed on its write.
        IngestionFailed: strict mode and at least one city failed.
    """
    recorded_at = now or datetime.now(timezone.utc)
    strict = settings.ingest_strict_mode if strict is None else strict

    try:
        async with session_factory() as session:
            cities = await list_cities(session)
    except (OSError, SQLAlchemyError) as exc:
        # Connection-level failures surface while opening the session
        raise StorageReadFatalError(f"Cannot reach storage: {exc}") from exc

    if not cities:
        raise EmptyCityList("No cities found in cities table")

    logger.info("Found %d cities in the database", len(cities))

    outcomes = await asyncio.gather(
        *(_ingest_city(session_factory, client, city, recorded_at) for city in cities)
    )

    failed = [city.id for city, err in zip(cities, outcomes) if err is not None]
    result = IngestionResult(
        attempted=len(cities),
        succeeded=len(cities) - len(failed),
        recorded_at=recorded_at,
        retention_days=settings.retention_days,
        failed_city_ids=failed,
    )

    if result.succeeded == 0 and all(isinstance(err, StorageWriteError) for err in outcomes):
        raise StorageFatalError(f"All {len(cities)} upserts failed; storage unavailable")

    if failed:
        logger.warning(
            "Ingested %d/%d cities; failed city ids: %s",
            result.succeeded, result.attempted, failed,
        )
        if strict:
            raise IngestionFailed(failed)

    try:
        async with session_factory() as session:
            result.cleaned_up = await sweep_old_readings(
                session, recorded_at, settings.retention_days
            )
    except (RetentionSweepError, OSError, SQLAlchemyError) as exc:
        logger.warning("Retention sweep failed (ingestion still succeeded): %s", exc)

    return result
