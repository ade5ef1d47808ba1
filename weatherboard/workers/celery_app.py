from celery import Celery

from weatherboard.config import settings

celery_app = Celery(
    "weatherboard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["weatherboard.workers.tasks"],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Reliability
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Result expiry — keep task summaries for 24 hours
    result_expires=86400,
    # Periodic ingestion (run `celery -A weatherboard.workers.celery_app beat`)
    beat_schedule={
        "ingest-weather": {
            "task": "weatherboard.ingest_weather",
            "schedule": settings.ingest_interval_minutes * 60.0,
        },
    },
)
