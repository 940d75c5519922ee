import logging
from typing import Any

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


async def fetch_forecast(settings: Settings, *, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    """
    Daily weather codes for the facility. Best effort: any upstream failure is
    logged and an empty payload is returned instead of failing the request.
    """
    params = {
        "latitude": settings.weather_latitude,
        "longitude": settings.weather_longitude,
        "daily": "weathercode",
        "timezone": settings.timezone,
    }
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=settings.weather_timeout_seconds)
    try:
        resp = await http.get(settings.weather_url, params=params)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("weather lookup failed: %s", exc)
        return {}
    finally:
        if owns_client:
            await http.aclose()
    return data if isinstance(data, dict) else {}
