"""Tests for the ingestion job and its HTTP trigger."""

from datetime import timedelta

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import Text, func, select

from conftest import CITIES, provider_payload
from weatherboard.db.base import Base
from weatherboard.errors import (
    EmptyCityList,
    IngestionFailed,
    RetentionSweepError,
    StorageFatalError,
    StorageReadFatalError,
)
from weatherboard.models import WeatherReading
from weatherboard.services import ingestion
from weatherboard.services.ingestion import run_ingestion, sweep_old_readings, upsert_reading
from weatherboard.services.normalizer import normalize_reading

OSAKA = CITIES[1]


async def _count_readings(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(WeatherReading))
        return result.scalar_one()


async def _stored_city_ids(session_factory) -> set[int]:
    async with session_factory() as session:
        result = await session.execute(select(WeatherReading.city_id))
        return set(result.scalars().all())


async def _drop_table(engine, name: str) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(lambda sync_conn: Base.metadata.tables[name].drop(sync_conn))


def _fail_with(status_code: int):
    return lambda request: httpx.Response(status_code, json={"message": "nope"})


# ── run_ingestion ─────────────────────────────────────────────────────────────

class TestRunIngestion:
    @pytest.mark.asyncio
    async def test_persists_one_reading_per_city(
        self, session_factory, provider_client, cities, now
    ):
        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.attempted == 3
        assert result.succeeded == 3
        assert result.failed_city_ids == []
        assert result.cleaned_up == 0
        assert await _count_readings(session_factory) == 3

    @pytest.mark.asyncio
    async def test_same_recorded_at_is_idempotent(
        self, session_factory, provider_client, cities, now
    ):
        await run_ingestion(session_factory, provider_client, now=now)
        await run_ingestion(session_factory, provider_client, now=now)

        assert await _count_readings(session_factory) == len(cities)

    @pytest.mark.asyncio
    async def test_new_cycle_adds_rows(self, session_factory, provider_client, cities, now):
        await run_ingestion(session_factory, provider_client, now=now)
        await run_ingestion(session_factory, provider_client, now=now + timedelta(minutes=10))

        assert await _count_readings(session_factory) == 2 * len(cities)

    @pytest.mark.asyncio
    async def test_partial_failure_skips_only_failing_city(
        self, session_factory, provider_client, provider_responses, cities, now
    ):
        provider_responses[OSAKA.latitude] = _fail_with(503)

        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.attempted == 3
        assert result.succeeded == 2
        assert result.failed_city_ids == [OSAKA.id]
        assert result.message == "Weather data updated successfully for 2 cities"
        assert await _stored_city_ids(session_factory) == {1, 3}

    @pytest.mark.asyncio
    async def test_network_error_and_malformed_body_are_skipped(
        self, session_factory, provider_client, provider_responses, cities, now
    ):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider_responses[CITIES[0].latitude] = refuse
        provider_responses[CITIES[2].latitude] = lambda request: httpx.Response(
            200, json={"main": {"temp": 1.0}}
        )

        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.succeeded == 1
        assert sorted(result.failed_city_ids) == [1, 3]
        assert await _stored_city_ids(session_factory) == {OSAKA.id}

    @pytest.mark.asyncio
    async def test_connection_error_on_one_write_is_isolated(
        self, session_factory, provider_client, cities, now, monkeypatch
    ):
        real_upsert = ingestion.upsert_reading

        async def flaky_upsert(session, row):
            if row["city_id"] == OSAKA.id:
                raise ConnectionRefusedError(111, "connection refused")
            await real_upsert(session, row)

        monkeypatch.setattr(ingestion, "upsert_reading", flaky_upsert)

        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.succeeded == 2
        assert result.failed_city_ids == [OSAKA.id]
        assert result.cleaned_up == 0
        assert await _stored_city_ids(session_factory) == {1, 3}

    @pytest.mark.asyncio
    async def test_strict_mode_fails_cycle_but_keeps_committed_writes(
        self, session_factory, provider_client, provider_responses, cities, now
    ):
        provider_responses[OSAKA.latitude] = _fail_with(500)

        with pytest.raises(IngestionFailed) as exc_info:
            await run_ingestion(session_factory, provider_client, now=now, strict=True)

        assert exc_info.value.failed_city_ids == [OSAKA.id]
        assert await _stored_city_ids(session_factory) == {1, 3}

    @pytest.mark.asyncio
    async def test_empty_city_list(self, session_factory, provider_client, now):
        with pytest.raises(EmptyCityList):
            await run_ingestion(session_factory, provider_client, now=now)

    @pytest.mark.asyncio
    async def test_unreadable_city_table_is_fatal(
        self, engine, session_factory, provider_client, now
    ):
        await _drop_table(engine, "cities")

        with pytest.raises(StorageReadFatalError):
            await run_ingestion(session_factory, provider_client, now=now)

    @pytest.mark.asyncio
    async def test_every_write_failing_is_fatal(
        self, engine, session_factory, provider_client, cities, now
    ):
        await _drop_table(engine, "weather_readings")

        with pytest.raises(StorageFatalError):
            await run_ingestion(session_factory, provider_client, now=now)

    @pytest.mark.asyncio
    async def test_sweep_failure_does_not_fail_cycle(
        self, session_factory, provider_client, cities, now, monkeypatch
    ):
        async def broken_sweep(*args, **kwargs):
            raise RetentionSweepError("delete timed out")

        monkeypatch.setattr(ingestion, "sweep_old_readings", broken_sweep)

        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.succeeded == 3
        assert result.cleaned_up is None
        assert "maintenance" not in result.as_dict()

    @pytest.mark.asyncio
    async def test_sweep_runs_after_upserts(
        self, session_factory, provider_client, cities, now
    ):
        await run_ingestion(session_factory, provider_client, now=now - timedelta(days=8))

        result = await run_ingestion(session_factory, provider_client, now=now)

        assert result.cleaned_up == 3
        assert result.maintenance == "Cleaned up 3 readings older than 7 days"
        assert await _count_readings(session_factory) == 3


# ── Storage primitives ────────────────────────────────────────────────────────

class TestUpsertReading:
    @pytest.mark.asyncio
    async def test_conflict_replaces_all_fields(self, session_factory, cities, now):
        first = normalize_reading(provider_payload(temp=10.0), 1, now)
        second = normalize_reading(
            provider_payload(temp=1500.0, weather=[{"main": "Rain"}]), 1, now
        )

        async with session_factory() as session:
            await upsert_reading(session, first)
        async with session_factory() as session:
            await upsert_reading(session, second)

        async with session_factory() as session:
            rows = (await session.execute(select(WeatherReading))).scalars().all()

        assert len(rows) == 1
        assert rows[0].temp == pytest.approx(999.99)
        assert rows[0].weather_main == "Rain"
        assert rows[0].weather_description is None

    @pytest.mark.asyncio
    async def test_free_text_classification_is_unbounded(self, session_factory, cities, now):
        long_main = "Volcanic Ash " * 10
        long_icon = "icon-" * 10
        row = normalize_reading(
            provider_payload(weather=[{"main": long_main, "icon": long_icon}]), 1, now
        )

        async with session_factory() as session:
            await upsert_reading(session, row)
            stored = (await session.execute(select(WeatherReading))).scalar_one()

        assert stored.weather_main == long_main
        assert stored.weather_icon == long_icon
        for col in ("weather_main", "weather_description", "weather_icon"):
            assert isinstance(WeatherReading.__table__.c[col].type, Text)

    @pytest.mark.asyncio
    async def test_negative_clamp_is_stored(self, session_factory, cities, now):
        row = normalize_reading(provider_payload(temp=-1500.0), 2, now)

        async with session_factory() as session:
            await upsert_reading(session, row)
            stored = (await session.execute(select(WeatherReading))).scalar_one()

        assert stored.temp == pytest.approx(-999.99)


class TestRetentionSweep:
    @pytest.mark.asyncio
    async def test_deletes_only_readings_past_window(self, session_factory, cities, now):
        async with session_factory() as session:
            for days in (8, 6):
                await upsert_reading(
                    session, normalize_reading(provider_payload(), 1, now - timedelta(days=days))
                )

        async with session_factory() as session:
            deleted = await sweep_old_readings(session, now, retention_days=7)

        assert deleted == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(WeatherReading))).scalars().all()
        assert len(remaining) == 1
        assert remaining[0].recorded_at.replace(tzinfo=None) == (
            now - timedelta(days=6)
        ).replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_broken_storage_raises_sweep_error(self, engine, session_factory, now):
        await _drop_table(engine, "weather_readings")

        async with session_factory() as session:
            with pytest.raises(RetentionSweepError):
                await sweep_old_readings(session, now, retention_days=7)


# ── GET /api/v1/fetch-weather ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_trigger_returns_summary(client: AsyncClient, cities):
    response = await client.get("/api/v1/fetch-weather")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Weather data updated successfully for 3 cities"
    assert body["maintenance"] == "Cleaned up 0 readings older than 7 days"
    assert body["failed_city_ids"] == []


@pytest.mark.asyncio
async def test_trigger_reports_partial_success(
    client: AsyncClient, provider_responses, cities
):
    provider_responses[OSAKA.latitude] = _fail_with(401)

    response = await client.get("/api/v1/fetch-weather")

    assert response.status_code == 200
    body = response.json()
    assert body["attempted"] == 3
    assert body["succeeded"] == 2
    assert body["failed_city_ids"] == [OSAKA.id]


@pytest.mark.asyncio
async def test_trigger_without_cities_returns_404(client: AsyncClient):
    response = await client.get("/api/v1/fetch-weather")
    assert response.status_code == 404
    assert response.json()["detail"] == "No cities found in cities table"


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
async def test_trigger_rejects_other_methods(client: AsyncClient, method: str):
    response = await client.request(method, "/api/v1/fetch-weather")
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_trigger_returns_500_when_cities_unreadable(client: AsyncClient, engine):
    await _drop_table(engine, "cities")

    response = await client.get("/api/v1/fetch-weather")
    assert response.status_code == 500
