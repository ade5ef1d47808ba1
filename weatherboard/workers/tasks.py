"""Celery task definitions.

Beat fires ingest_weather every ``ingest_interval_minutes``; the task runs the
same async cycle the HTTP trigger does, in a fresh event loop.
"""

import asyncio
import logging

import httpx

from weatherboard.config import settings
from weatherboard.db.session import AsyncSessionLocal, engine
from weatherboard.errors import EmptyCityList
from weatherboard.services.ingestion import run_ingestion
from weatherboard.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ── Entry point ────────────────────────────────────────────────────────────────

@celery_app.task(bind=True, name="weatherboard.ingest_weather", max_retries=0)
def ingest_weather(self) -> dict:
    """Celery entry point — runs one ingestion cycle in a new event loop."""
    return asyncio.run(_run_cycle())


# ── Async cycle ────────────────────────────────────────────────────────────────

async def _run_cycle() -> dict:
    try:
        async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
            result = await run_ingestion(AsyncSessionLocal, client)
    except EmptyCityList as exc:
        logger.warning("Scheduled ingestion skipped: %s", exc)
        return {"message": str(exc), "attempted": 0, "succeeded": 0}
    except Exception as exc:
        logger.exception("Scheduled ingestion failed: %s", exc)
        raise
    finally:
        # Pooled connections are bound to this event loop, which asyncio.run closes
        await engine.dispose()

    logger.info(result.message)
    return result.as_dict()
