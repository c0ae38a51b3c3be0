"""Error types raised by skycolor."""

from pathlib import Path
from typing import Union


class SkycolorError(Exception):
    """Base class for fatal skycolor errors."""


class ConfigError(SkycolorError, ValueError):
    """Configuration file is unreadable or invalid."""


class TimeSourceError(SkycolorError):
    """Local time or UTC offset could not be determined."""


class SolarDataError(SkycolorError):
    """Sun times could not be calculated for the configured location."""


class WeatherError(SkycolorError):
    """Weather data could not be fetched or parsed.

    Never escapes the weather client; it degrades to "no weather data".
    """


class NoMatchError(SkycolorError):
    """No candidate files were found for the current period."""

    def __init__(self, period: str = ""):
        message = "No matches found"
        if period:
            message += f" for period '{period}'"
        super().__init__(message)
        self.period = period


class WallpaperApplyError(SkycolorError):
    """The desktop backend failed to set the wallpaper."""

    def __init__(self, path: Union[str, Path], reason: str = ""):
        message = f"Failed to set wallpaper: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.path = str(path)
