"""Configuration loading and validation."""

import json
import logging
import math
import os
import re
import sys
import urllib.request
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Tuple
import pytz

from skycolor.errors import ConfigError
from skycolor.resolver import MatchPolicy
from skycolor.rules import RuleSet, expand_user
from skycolor.time_period import TimePeriod

logger = logging.getLogger(__name__)

API_KEY_PATTERN = re.compile(r'\A\s*([0-9a-f]{32})\s*\Z')

BACKENDS = ('auto', 'hyprpaper', 'gnome', 'feh', 'macos', 'windows')


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that only resolves true/false as booleans.

    YAML 1.1 reads a bare `on:` key as True; rule entries need it as a string.
    """


ConfigLoader.yaml_implicit_resolvers = {
    first: [r for r in resolvers if r[0] != 'tag:yaml.org,2002:bool']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ConfigLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r'^(?:true|True|TRUE|false|False|FALSE)$'),
    list('tTfF'),
)


@dataclass
class OpenWeatherMapConfig:
    """Weather provider settings."""

    api_key: str
    timeout: float = 10
    fallback_clear_sky: bool = False

    def __repr__(self) -> str:
        return (
            f"OpenWeatherMapConfig(api_key='***', timeout={self.timeout}, "
            f"fallback_clear_sky={self.fallback_clear_sky})"
        )


@dataclass
class Config:
    """Skycolor configuration."""

    latitude: float
    longitude: float
    rules: RuleSet
    timezone: Optional[str] = None
    openweathermap: Optional[OpenWeatherMapConfig] = None
    match_policy: MatchPolicy = MatchPolicy.AGGREGATE_ALL
    backend: str = "auto"
    monitor: str = ""
    polar_fallback: bool = False

    @classmethod
    def load(cls, config_path: Path, home: Optional[str] = None) -> "Config":
        """
        Load and validate configuration from YAML file.

        Args:
            config_path: Path to configuration file
            home: Home directory for '~' expansion (defaults to the current user's)

        Returns:
            Config instance

        Raises:
            ConfigError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path) as f:
                data = yaml.load(f, Loader=ConfigLoader)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {config_path}: {e}") from e

        if not data:
            raise ConfigError("Configuration file is empty")
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        config = cls.from_dict(data, home=home)
        logger.info(f"Loaded {config_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict, home: Optional[str] = None) -> "Config":
        """Validate an already parsed configuration document."""
        # Validate location data
        location = data.get('location') or {}
        if not isinstance(location, dict):
            raise ConfigError("'location' must be a mapping")

        longitude = _coordinate(location, 'longitude', 180)
        latitude = _coordinate(location, 'latitude', 90)

        timezone = location.get('timezone')
        if timezone is not None and timezone not in pytz.all_timezones:
            raise ConfigError(
                f"Invalid timezone: {timezone}. "
                f"Must be a valid IANA timezone (e.g., 'Asia/Tokyo', 'Europe/London')"
            )

        rules = RuleSet.from_dict(data, home=home)

        openweathermap = None
        if data.get('openweathermap') is not None:
            openweathermap = _openweathermap(data['openweathermap'], home)

        # Optional settings
        settings = data.get('settings') or {}
        if not isinstance(settings, dict):
            raise ConfigError("'settings' must be a mapping")

        policy_name = settings.get('match_policy', MatchPolicy.AGGREGATE_ALL.value)
        try:
            match_policy = MatchPolicy(policy_name)
        except ValueError:
            valid = ', '.join(p.value for p in MatchPolicy)
            raise ConfigError(f"Invalid match_policy: {policy_name}. Must be one of: {valid}")

        backend = settings.get('backend', 'auto')
        if backend not in BACKENDS:
            raise ConfigError(f"Invalid backend: {backend}. Must be one of: {', '.join(BACKENDS)}")

        monitor = settings.get('monitor', '')
        if not isinstance(monitor, str):
            raise ConfigError(f"Monitor must be a string, got: {monitor!r}")

        polar_fallback = settings.get('polar_fallback', False)
        if not isinstance(polar_fallback, bool):
            raise ConfigError(f"polar_fallback must be true or false, got: {polar_fallback!r}")

        return cls(
            latitude=latitude,
            longitude=longitude,
            rules=rules,
            timezone=timezone,
            openweathermap=openweathermap,
            match_policy=match_policy,
            backend=backend,
            monitor=monitor,
            polar_fallback=polar_fallback,
        )


def _coordinate(location: dict, name: str, limit: float) -> float:
    value = location.get(name)
    if value is None:
        raise ConfigError(f"Missing required field: location.{name}")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name.capitalize()} must be a number, got: {value!r}")

    value = float(value)
    # zero, subnormal, infinite and NaN values are rejected
    normal = math.isfinite(value) and abs(value) >= sys.float_info.min
    if not normal or not (-limit <= value <= limit):
        raise ConfigError(
            f"{name.capitalize()} must be a normal number between {-limit} and {limit}, got: {value}"
        )
    return value


def _openweathermap(data, home: Optional[str]) -> OpenWeatherMapConfig:
    if not isinstance(data, dict):
        raise ConfigError("'openweathermap' must be a mapping")

    api_key = read_api_key(data.get('api_key'), home)

    timeout = data.get('timeout', 10)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"openweathermap.timeout must be a positive number, got: {timeout!r}")

    fallback = data.get('fallback_clear_sky', False)
    if not isinstance(fallback, bool):
        raise ConfigError(f"openweathermap.fallback_clear_sky must be true or false, got: {fallback!r}")

    return OpenWeatherMapConfig(api_key=api_key, timeout=timeout, fallback_clear_sky=fallback)


def read_api_key(source, home: Optional[str] = None) -> str:
    """
    Read the OpenWeatherMap API key.

    ``source`` is either ``{type: file, path: ...}`` or ``{type: env, name: ...}``.
    """
    if not isinstance(source, dict):
        raise ConfigError("openweathermap.api_key must be a mapping with a 'type'")

    kind = source.get('type')
    if kind == 'file':
        path_str = source.get('path')
        if not isinstance(path_str, str) or not path_str:
            raise ConfigError("openweathermap.api_key.path is required for type 'file'")
        path = Path(expand_user(os.path.expandvars(path_str), home))
        try:
            content = path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        where = str(path)
    elif kind == 'env':
        name = source.get('name')
        if not isinstance(name, str) or not name:
            raise ConfigError("openweathermap.api_key.name is required for type 'env'")
        content = os.environ.get(name)
        if not content:
            raise ConfigError(f"Environment variable {name} is not set")
        where = f"${name}"
    else:
        raise ConfigError(f"Invalid openweathermap.api_key.type: {kind!r}. Must be 'file' or 'env'")

    match = API_KEY_PATTERN.match(content)
    if not match:
        raise ConfigError(f"Failed to read {where}: expected 32 lowercase hex digits")
    return match.group(1)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    xdg_config_home = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config_home) / 'skycolor' / 'config.yaml'


def get_location_from_ip() -> Tuple[float, float, str]:
    """Detect user's location via IP geolocation.

    Returns:
        Tuple of (latitude, longitude, timezone)

    Raises:
        OSError: If the request fails
        ValueError: If the response can't be parsed
    """
    url = "http://ip-api.com/json/?fields=lat,lon,timezone"
    with urllib.request.urlopen(url, timeout=5) as response:
        data = json.loads(response.read().decode())
    try:
        return data['lat'], data['lon'], data['timezone']
    except (KeyError, TypeError) as e:
        raise ValueError(f"Unexpected geolocation response: {data!r}") from e


def render_template(latitude: float, longitude: float, timezone: str) -> str:
    """Configuration template with one example rule per period."""
    sections = "\n".join(
        f"{period.value}:\n"
        f"  - patterns:\n"
        f"      - ~/Pictures/wallpapers/{period.value}/*\n"
        for period in TimePeriod
    )
    return f"""# Skycolor configuration

location:
  latitude: {latitude}
  longitude: {longitude}
  timezone: "{timezone}"

# Optional: weather-dependent rules
# openweathermap:
#   api_key:
#     type: file
#     path: ~/.config/skycolor/openweathermap-api-key
#   timeout: 10
#   fallback_clear_sky: false

# Each period holds a list of rule entries. An entry may carry an `on` list of
# weather conditions (ids like 800 or groups like Rain, Clouds); entries
# without `on` always apply.
{sections}
settings:
  match_policy: aggregate_all  # aggregate_all or first_match
  backend: auto                # auto, hyprpaper, gnome, feh, macos, windows
  monitor: ""                  # Monitor name (hyprpaper only, empty = all monitors)
  polar_fallback: false        # Use fixed 6/12/18h times when the sun doesn't rise or set
"""


def create_default_config(config_path: Path) -> None:
    """Create a default configuration template file.

    Args:
        config_path: Path where the config file should be created
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Try to detect location automatically
    try:
        lat, lon, tz = get_location_from_ip()
        logger.info(f"Detected location: {lat}, {lon}, {tz}")
    except (OSError, ValueError) as e:
        logger.warning(f"Could not detect location: {e}, using defaults")
        lat, lon, tz = 35.6762, 139.6503, "Asia/Tokyo"

    config_path.write_text(render_template(lat, lon, tz))
