from fastapi import APIRouter

from weatherboard.api.v1.endpoints import ingest, system, weather

api_v1_router = APIRouter()

# System / health endpoints (status, config)
api_v1_router.include_router(system.router, tags=["System"])

# Ingestion trigger (scheduler or manual call)
api_v1_router.include_router(ingest.router, tags=["Ingestion"])

# Latest reading per city for the display
api_v1_router.include_router(weather.router, tags=["Weather"])
