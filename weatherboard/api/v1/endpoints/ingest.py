"""Ingestion trigger.

GET /fetch-weather — run one ingestion cycle. Safe to call repeatedly from an
external scheduler; overlapping calls collapse onto the same keyed rows.
Any other method on this path gets 405 from the router.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weatherboard.db.session import get_session_factory
from weatherboard.dependencies import get_http_client
from weatherboard.errors import EmptyCityList, IngestionFailed, StorageFatalError
from weatherboard.services.ingestion import run_ingestion

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/fetch-weather",
    summary="Run one ingestion cycle",
    description=(
        "Fetches current weather for every registered city, upserts one reading "
        "per city and removes readings older than the retention window. "
        "Cities whose fetch fails are skipped; the cycle still returns 200."
    ),
)
async def fetch_weather(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        result = await run_ingestion(session_factory, client)
    except EmptyCityList as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except (StorageFatalError, IngestionFailed) as exc:
        logger.exception("Ingestion cycle failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error",
        )

    return result.as_dict()
