"""Time period definitions and mapping logic."""

from enum import Enum
from datetime import datetime, timedelta


# Split between early and late afternoon, counted back from sunset
LATE_AFTERNOON_WINDOW = timedelta(minutes=90)


class TimePeriod(Enum):
    """Time periods for wallpaper switching."""

    MIDNIGHT = "midnight"
    MORNING = "morning"
    EARLY_AFTERNOON = "early_afternoon"
    LATE_AFTERNOON = "late_afternoon"
    EVENING = "evening"

    @property
    def label(self) -> str:
        """Human readable name, e.g. 'early afternoon'."""
        return self.value.replace('_', ' ')


def get_current_period(sun_times: dict, current_time: datetime) -> TimePeriod:
    """
    Determine the current time period based on sun position.

    The ranges are checked literally in order. Sun times are not assumed to
    be monotonic (polar latitudes can break that), so anything that falls
    outside every range is treated as midnight instead of raising.

    Args:
        sun_times: Dictionary with 'sunrise', 'noon', 'sunset', 'midnight'
            datetime objects
        current_time: Current datetime (timezone-aware)

    Returns:
        TimePeriod enum value
    """
    sunrise = sun_times['sunrise']
    solar_noon = sun_times['noon']
    sunset = sun_times['sunset']
    midnight = sun_times['midnight']

    if sunrise <= current_time < solar_noon:
        return TimePeriod.MORNING
    elif solar_noon <= current_time < sunset - LATE_AFTERNOON_WINDOW:
        return TimePeriod.EARLY_AFTERNOON
    elif solar_noon <= current_time < sunset:
        return TimePeriod.LATE_AFTERNOON
    elif sunset <= current_time < midnight:
        return TimePeriod.EVENING
    else:
        return TimePeriod.MIDNIGHT
