"""Current weather conditions from OpenWeatherMap."""

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from skycolor.errors import WeatherError

logger = logging.getLogger(__name__)

OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/weather"

CLEAR_SKY_ID = 800


class WeatherMain(Enum):
    """Weather condition groups (https://openweathermap.org/weather-conditions)."""

    THUNDERSTORM = "Thunderstorm"
    DRIZZLE = "Drizzle"
    RAIN = "Rain"
    SNOW = "Snow"
    MIST = "Mist"
    SMOKE = "Smoke"
    HAZE = "Haze"
    DUST = "Dust"
    FOG = "Fog"
    SAND = "Sand"
    ASH = "Ash"
    SQUALL = "Squall"
    TORNADO = "Tornado"
    CLEAR = "Clear"
    CLOUDS = "Clouds"

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class WeatherCondition:
    """A single reported condition.

    ``main`` is None when the provider reports a group we don't know; such a
    condition can still be matched by id.
    """

    id: int
    main: Optional[WeatherMain]
    description: str = ""

    def __str__(self) -> str:
        return f"{self.description!r} (id={self.id})"


@dataclass(frozen=True)
class WeatherSnapshot:
    """Weather conditions reported at one point in time."""

    conditions: Tuple[WeatherCondition, ...] = ()

    def matches(self, filters: Iterable) -> bool:
        """True if any filter matches any condition."""
        filters = list(filters)
        return any(f.matches(condition) for condition in self.conditions for f in filters)

    @classmethod
    def clear_sky(cls) -> "WeatherSnapshot":
        """Synthetic snapshot used when fallback to clear sky is enabled."""
        return cls((
            WeatherCondition(
                id=CLEAR_SKY_ID,
                main=WeatherMain.CLEAR,
                description="clear sky (default value from skycolor)",
            ),
        ))

    @classmethod
    def from_response(cls, data) -> "WeatherSnapshot":
        """
        Build a snapshot from a current weather API response.

        Raises:
            WeatherError: If the response doesn't have the expected shape
        """
        if not isinstance(data, dict) or not isinstance(data.get('weather'), list):
            raise WeatherError("Unexpected response: missing 'weather' list")

        conditions = []
        for item in data['weather']:
            if not isinstance(item, dict):
                raise WeatherError(f"Unexpected weather entry: {item!r}")
            code = item.get('id')
            main = item.get('main')
            description = item.get('description', "")
            if not isinstance(code, int) or isinstance(code, bool) or code < 0:
                raise WeatherError(f"Unexpected weather id: {code!r}")
            if not isinstance(main, str):
                raise WeatherError(f"Unexpected weather main: {main!r}")

            try:
                main_value = WeatherMain(main)
            except ValueError:
                logger.debug(f"Unknown weather group {main!r} (id={code})")
                main_value = None

            conditions.append(WeatherCondition(code, main_value, str(description)))

        return cls(tuple(conditions))


class OpenWeatherMapClient:
    """Fetches current conditions; failures degrade to "no data"."""

    def __init__(self, api_key: str, timeout: float = 10, fallback_clear_sky: bool = False):
        """
        Args:
            api_key: OpenWeatherMap API key
            timeout: Request timeout in seconds
            fallback_clear_sky: Return a clear sky snapshot instead of None
                when no data could be fetched
        """
        self.api_key = api_key
        self.timeout = timeout
        self.fallback_clear_sky = fallback_clear_sky

    def mask(self, text: str) -> str:
        """Hide the API key in text that is about to be logged."""
        return mask_api_key(text, self.api_key)

    def fetch_current(self, longitude: float, latitude: float) -> Optional[WeatherSnapshot]:
        """
        Get current weather for a location.

        Returns:
            WeatherSnapshot, or None if nothing could be fetched (or the clear
            sky snapshot when fallback_clear_sky is set)
        """
        try:
            snapshot = self._request(longitude, latitude)
        except WeatherError as e:
            logger.warning(self.mask(str(e)))
            if self.fallback_clear_sky:
                logger.warning(f'Using "clear sky" (id={CLEAR_SKY_ID})')
                return WeatherSnapshot.clear_sky()
            logger.warning("Continuing without weather data")
            return None

        logger.info("Current weather:")
        for condition in snapshot.conditions:
            logger.info(f"- {condition}")
        return snapshot

    def _request(self, longitude: float, latitude: float) -> WeatherSnapshot:
        query = urllib.parse.urlencode({
            'lon': longitude,
            'lat': latitude,
            'APPID': self.api_key,
        })
        url = f"{OPENWEATHERMAP_URL}?{query}"
        logger.info(f"GET: {self.mask(url)}")

        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                logger.info(f"{response.status} {response.reason}")
                body = response.read().decode()
        except urllib.error.HTTPError as e:
            raise WeatherError(f"HTTP error {e.code} {e.reason} for url: {url}") from e
        except (OSError, http.client.HTTPException) as e:
            # URLError, socket timeouts and malformed HTTP responses
            raise WeatherError(f"Request failed for url: {url}: {e}") from e
        except ValueError as e:
            raise WeatherError(f"Could not decode response from {url}: {e}") from e

        try:
            data = json.loads(body)
        except ValueError as e:
            raise WeatherError(f"Invalid JSON from {url}: {e}") from e

        return WeatherSnapshot.from_response(data)


def mask_api_key(text: str, api_key: str) -> str:
    """Replace every occurrence of ``api_key`` in ``text`` with blocks."""
    if not api_key:
        return text
    return text.replace(api_key, "█" * len(api_key))
