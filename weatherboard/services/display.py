"""Display helpers for the latest-snapshot endpoint.

Timezone conversion, compass labels and icon keys. No business logic lives here.
"""

from datetime import datetime, timezone

import pytz

from weatherboard.models.reading import WeatherReading

_COMPASS_POINTS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

_ICON_BY_CONDITION = {
    "clear": "sun",
    "clouds": "cloud",
    "rain": "cloud-rain",
    "drizzle": "cloud-rain",
    "snow": "cloud-snow",
    "thunderstorm": "cloud-lightning",
}
_DEFAULT_ICON = "cloud"


def format_local(dt: datetime | None, tz_name: str, time_only: bool = False) -> str:
    """Render *dt* in *tz_name* as ``YYYY/MM/DD HH:MM`` (or ``HH:MM``).

    Naive datetimes are read as UTC.
    """
    if dt is None:
        return "N/A"
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    local = dt.astimezone(pytz.timezone(tz_name))
    return local.strftime("%H:%M" if time_only else "%Y/%m/%d %H:%M")


def wind_direction(deg: int) -> str:
    # Half-up rounding: 22.5° is already NE
    return _COMPASS_POINTS[int(deg / 45 + 0.5) % 8]


def weather_icon(weather_main: str | None) -> str:
    if not weather_main:
        return _DEFAULT_ICON
    return _ICON_BY_CONDITION.get(weather_main.lower(), _DEFAULT_ICON)


def serialize_reading(reading: WeatherReading, tz_name: str) -> dict:
    city = reading.city
    return {
        "city_id": reading.city_id,
        "city": {
            "name": city.name,
            "latitude": city.latitude,
            "longitude": city.longitude,
        },
        "recorded_at": reading.recorded_at.isoformat(),
        "recorded_at_local": format_local(reading.recorded_at, tz_name),
        "temp": reading.temp,
        "feels_like": reading.feels_like,
        "temp_min": reading.temp_min,
        "temp_max": reading.temp_max,
        "pressure": reading.pressure,
        "humidity": reading.humidity,
        "wind_speed": reading.wind_speed,
        "wind_deg": reading.wind_deg,
        "wind_direction": wind_direction(reading.wind_deg),
        "cloudiness": reading.cloudiness,
        "visibility_km": round(reading.visibility / 1000, 1),
        "weather_main": reading.weather_main,
        "weather_description": reading.weather_description,
        "icon": weather_icon(reading.weather_main),
        "sunrise_local": format_local(reading.sunrise, tz_name, time_only=True),
        "sunset_local": format_local(reading.sunset, tz_name, time_only=True),
    }
