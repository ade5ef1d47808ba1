"""Exception types raised by the ingestion job.

Per-city errors (ProviderFetchError, StorageWriteError) are caught at the
per-city boundary and only logged. The remaining types reach the caller of
``run_ingestion`` and map to HTTP status codes in the trigger endpoint.
"""

from datetime import datetime


class WeatherboardError(Exception):
    """Base class for all service errors."""


class ProviderFetchError(WeatherboardError):
    """Network failure, non-success status or malformed body for one city."""

    def __init__(self, reason: str, city_id: int | None = None) -> None:
        self.city_id = city_id
        self.reason = reason
        prefix = f"city_id={city_id}: " if city_id is not None else ""
        super().__init__(f"{prefix}{reason}")


class StorageWriteError(WeatherboardError):
    """Upsert of one city's reading failed."""

    def __init__(self, city_id: int, recorded_at: datetime, reason: str) -> None:
        self.city_id = city_id
        self.recorded_at = recorded_at
        super().__init__(
            f"Upsert failed for (city_id={city_id}, recorded_at={recorded_at.isoformat()}): {reason}"
        )


class StorageFatalError(WeatherboardError):
    """Storage is unusable for this cycle; every write failed."""


class StorageReadFatalError(StorageFatalError):
    """The city list could not be read; nothing can proceed."""


class RetentionSweepError(WeatherboardError):
    """Deleting expired readings failed. Never fails the cycle."""


class EmptyCityList(WeatherboardError):
    """No cities are registered."""


class IngestionFailed(WeatherboardError):
    """Strict mode only: at least one city could not be ingested."""

    def __init__(self, failed_city_ids: list[int]) -> None:
        self.failed_city_ids = failed_city_ids
        super().__init__(f"Ingestion failed for city ids {failed_city_ids}")
