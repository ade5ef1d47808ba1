"""OpenWeatherMap current-weather client.

One request per city, keyed by coordinates. The caller owns the
``httpx.AsyncClient`` so a whole ingestion cycle shares one connection pool.
"""

import logging

import httpx

from weatherboard.config import settings
from weatherboard.errors import ProviderFetchError

logger = logging.getLogger(__name__)


async def fetch_current_weather(
    client: httpx.AsyncClient, latitude: float, longitude: float
) -> dict:
    """Return the decoded current-weather body for (*latitude*, *longitude*).

    Raises ProviderFetchError on network failure, a non-2xx status or a body
    that is not a JSON object.
    """
    params = {
        "lat": latitude,
        "lon": longitude,
        "appid": settings.openweather_api_key,
        "units": settings.openweather_units,
    }
    url = f"{settings.openweather_base_url}/weather"

    try:
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPStatusError as exc:
        raise ProviderFetchError(
            f"provider returned {exc.response.status_code} {exc.response.reason_phrase}"
        ) from exc
    except httpx.HTTPError as exc:
        raise ProviderFetchError(f"request failed: {exc!r}") from exc
    except ValueError as exc:
        raise ProviderFetchError("response body is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise ProviderFetchError("response body is not a JSON object")

    logger.debug("Fetched weather for (%.4f, %.4f)", latitude, longitude)
    return payload
