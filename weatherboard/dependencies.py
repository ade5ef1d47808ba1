from collections.abc import AsyncGenerator

import httpx

from weatherboard.config import settings


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """FastAPI dependency — one provider client per ingestion request, shared by all cities."""
    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        yield client
