"""Provider response normalization: flatten an OpenWeatherMap body into a weather_readings row."""

import logging
import math
from datetime import datetime, timezone

from weatherboard.errors import ProviderFetchError
from weatherboard.models.reading import DECIMAL_BOUND

logger = logging.getLogger(__name__)


def clamp(value: float, bound: float = DECIMAL_BOUND) -> float:
    """Clamp *value* into [-bound, bound] and round to the column scale.

    Infinite values clamp to the nearest bound; NaN has no meaningful
    position and raises ValueError.
    """
    if math.isnan(value):
        raise ValueError("NaN cannot be stored")
    clamped = min(max(value, -bound), bound)
    if clamped != value:
        logger.warning("Clamped out-of-range value %s to %s", value, clamped)
    return round(clamped, 2)


def _number(payload: dict, *path: str | int) -> float:
    node = payload
    for key in path:
        node = node[key]
    if isinstance(node, bool) or not isinstance(node, (int, float)):
        raise TypeError(f"{'.'.join(map(str, path))} is not a number: {node!r}")
    return float(node)


def _integer(payload: dict, *path: str | int) -> int:
    value = _number(payload, *path)
    if not math.isfinite(value):
        raise ValueError(f"{'.'.join(map(str, path))} is not finite")
    return int(round(value))


def _epoch(payload: dict, *path: str | int) -> datetime:
    return datetime.fromtimestamp(_integer(payload, *path), tz=timezone.utc)


def normalize_reading(payload: dict, city_id: int, recorded_at: datetime) -> dict:
    """Map a current-weather body onto the WeatherReading column set.

    Decimal columns are clamped rather than rejected. A missing or malformed
    required field raises ProviderFetchError so the caller skips the city.
    """
    try:
        condition = payload["weather"][0]
        weather_main = condition["main"]
        if not isinstance(weather_main, str) or not weather_main:
            raise TypeError(f"weather[0].main is not a string: {weather_main!r}")

        row = {
            "city_id": city_id,
            "recorded_at": recorded_at,
            "temp": clamp(_number(payload, "main", "temp")),
            "feels_like": clamp(_number(payload, "main", "feels_like")),
            "temp_min": clamp(_number(payload, "main", "temp_min")),
            "temp_max": clamp(_number(payload, "main", "temp_max")),
            "pressure": _integer(payload, "main", "pressure"),
            "humidity": _integer(payload, "main", "humidity"),
            "wind_speed": clamp(_number(payload, "wind", "speed")),
            "wind_deg": _integer(payload, "wind", "deg") % 360,
            "cloudiness": _integer(payload, "clouds", "all"),
            "visibility": _integer(payload, "visibility"),
            "weather_main": weather_main,
            "weather_description": condition.get("description"),
            "weather_icon": condition.get("icon"),
            "sunrise": _epoch(payload, "sys", "sunrise"),
            "sunset": _epoch(payload, "sys", "sunset"),
            "name": payload.get("name"),
            "country": payload.get("sys", {}).get("country"),
            "dt": _integer(payload, "dt"),
        }
    except (KeyError, IndexError, TypeError, ValueError, OverflowError, OSError) as exc:
        raise ProviderFetchError(f"malformed provider body: {exc!r}", city_id) from exc

    return row
