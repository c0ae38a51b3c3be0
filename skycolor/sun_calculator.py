"""Sun position calculation using astral library."""

import logging
from datetime import datetime, time, timedelta, tzinfo
from typing import Callable, Optional

from astral import Observer
from astral.sun import midnight, noon, sunrise, sunset
import pytz

from skycolor.errors import SolarDataError, TimeSourceError


logger = logging.getLogger(__name__)

# (day_start, longitude, latitude) -> {'sunrise', 'noon', 'sunset', 'midnight'}
SolarEventsFn = Callable[[datetime, float, float], dict]


def astral_solar_events(day_start: datetime, longitude: float, latitude: float) -> dict:
    """
    Compute raw solar events for the civil day starting at ``day_start``.

    Times are returned in ``day_start``'s timezone. 'midnight' is the solar
    midnight astral reports for that date, which may fall before or after
    ``day_start``.

    Raises:
        ValueError: If the sun never rises or sets on that date
    """
    observer = Observer(latitude=latitude, longitude=longitude)
    date = day_start.date()
    tz = day_start.tzinfo
    return {
        'sunrise': sunrise(observer, date=date, tzinfo=tz),
        'noon': noon(observer, date=date, tzinfo=tz),
        'sunset': sunset(observer, date=date, tzinfo=tz),
        'midnight': midnight(observer, date=date, tzinfo=tz),
    }


def get_local_timezone() -> tzinfo:
    """Return the system's current local timezone."""
    try:
        tz = datetime.now().astimezone().tzinfo
    except (OSError, OverflowError, ValueError) as e:
        raise TimeSourceError(f"Could not get the current UTC offset: {e}") from e
    if tz is None:
        raise TimeSourceError("Could not get the current UTC offset")
    return tz


def localize(tz: tzinfo, naive: datetime) -> datetime:
    """Attach ``tz`` to a naive datetime (pytz zones need ``localize``)."""
    if hasattr(tz, 'localize'):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


class SunCalculator:
    """Calculate sun position for a given location."""

    def __init__(
        self,
        latitude: float,
        longitude: float,
        timezone: Optional[str] = None,
        events_fn: SolarEventsFn = astral_solar_events,
        polar_fallback: bool = False,
    ):
        """
        Initialize sun calculator.

        Args:
            latitude: Latitude in degrees (-90 to 90)
            longitude: Longitude in degrees (-180 to 180)
            timezone: IANA timezone string (e.g., 'Asia/Tokyo'), or None for
                the system local timezone
            events_fn: Solar event source, see ``astral_solar_events``
            polar_fallback: Use fixed times when the sun doesn't rise/set
        """
        self.latitude = latitude
        self.longitude = longitude
        self.tz = pytz.timezone(timezone) if timezone else get_local_timezone()
        self.events_fn = events_fn
        self.polar_fallback = polar_fallback

    def now(self) -> datetime:
        """Current time in the observer's timezone."""
        try:
            return datetime.now(self.tz)
        except (OSError, OverflowError, ValueError) as e:
            raise TimeSourceError(f"Could not get the current time: {e}") from e

    def day_start(self, date: datetime) -> datetime:
        """Local civil midnight at the beginning of ``date``'s day."""
        return localize(self.tz, datetime.combine(date.date(), time(0, 0)))

    def get_sun_times(self, date: datetime = None) -> dict:
        """
        Get sun times for the local day containing ``date``.

        Args:
            date: Date to calculate for (defaults to now)

        Returns:
            Dictionary with 'sunrise', 'noon', 'sunset', 'midnight' as
            timezone-aware datetime objects. 'midnight' is always after the
            start of the day.

        Raises:
            SolarDataError: If the sun doesn't rise/set and polar fallback is off
        """
        if date is None:
            date = self.now()
        elif date.tzinfo is not None:
            date = date.astimezone(self.tz)

        start = self.day_start(date)

        try:
            events = self.events_fn(start, self.longitude, self.latitude)
        except ValueError as e:
            if not self.polar_fallback:
                raise SolarDataError(
                    f"Sun calculation failed for {start.date()} "
                    f"at ({self.longitude}, {self.latitude}): {e}"
                ) from e
            logger.warning(f"Sun calculation failed (polar region?): {e}. Using fallback times.")
            sun_times = self._time_based_fallback(start)
        else:
            sun_times = {
                'sunrise': events['sunrise'],
                'noon': events['noon'],
                'sunset': events['sunset'],
                'midnight': self._midnight_boundary(start, events['midnight']),
            }

        logger.info(f"sunrise  = {sun_times['sunrise']}")
        logger.info(f"midday   = {sun_times['noon']}")
        logger.info(f"sunset   = {sun_times['sunset']}")
        logger.info(f"midnight = {sun_times['midnight']}")
        return sun_times

    def _midnight_boundary(self, start: datetime, solar_midnight: datetime) -> datetime:
        """
        End of the evening period.

        A solar midnight before the day start is moved one day forward;
        otherwise the evening lasts until the next local civil midnight.
        """
        if solar_midnight < start:
            return solar_midnight + timedelta(days=1)
        return self._next_day_start(start)

    def _next_day_start(self, start: datetime) -> datetime:
        return localize(self.tz, datetime.combine(start.date() + timedelta(days=1), time(0, 0)))

    def _time_based_fallback(self, start: datetime) -> dict:
        """
        Fallback for polar regions where sun doesn't rise/set.

        Uses fixed times: 6am (sunrise), 12pm (noon), 6pm (sunset), and the
        following local midnight.
        """
        day = start.date()
        return {
            'sunrise': localize(self.tz, datetime.combine(day, time(6, 0))),
            'noon': localize(self.tz, datetime.combine(day, time(12, 0))),
            'sunset': localize(self.tz, datetime.combine(day, time(18, 0))),
            'midnight': self._next_day_start(start),
        }
