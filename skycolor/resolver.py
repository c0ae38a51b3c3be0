"""Resolve rule entries for a time period into candidate wallpaper files."""

import glob
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

from skycolor.rules import RuleEntry, RuleSet
from skycolor.time_period import TimePeriod
from skycolor.weather import WeatherSnapshot


logger = logging.getLogger(__name__)


class MatchPolicy(Enum):
    """How rule entries of a period are combined."""

    # every matching entry contributes its patterns
    AGGREGATE_ALL = "aggregate_all"
    # only the first matching entry (in config order) is used
    FIRST_MATCH = "first_match"


def entry_matches(entry: RuleEntry, weather: Optional[WeatherSnapshot]) -> bool:
    """
    Check whether a rule entry applies to the current weather.

    Entries without filters always apply. Filtered entries never apply when
    there is no weather data.
    """
    if entry.on is None:
        return True
    if weather is None:
        return False
    return weather.matches(entry.on)


def matching_entries(
    entries,
    weather: Optional[WeatherSnapshot],
    policy: MatchPolicy = MatchPolicy.AGGREGATE_ALL,
) -> List[RuleEntry]:
    """Select the entries whose patterns should be expanded."""
    matched = [entry for entry in entries if entry_matches(entry, weather)]
    if policy is MatchPolicy.FIRST_MATCH:
        return matched[:1]
    return matched


def expand_pattern(pattern: str) -> List[str]:
    """
    Expand a glob pattern into existing regular files.

    Directories, dangling symlinks and names that aren't valid UTF-8 are
    skipped with a warning.
    """
    files = []
    for match in sorted(glob.glob(pattern, recursive=True, include_hidden=True)):
        path = Path(match)
        if not path.is_file():
            logger.warning(f"Ignoring {match}")
            continue
        try:
            match.encode('utf-8')
        except UnicodeEncodeError:
            logger.warning(f"Ignoring {match!r} (not valid UTF-8)")
            continue
        files.append(match)
    return files


def resolve_candidates(
    period: TimePeriod,
    rules: RuleSet,
    weather: Optional[WeatherSnapshot],
    policy: MatchPolicy = MatchPolicy.AGGREGATE_ALL,
) -> List[str]:
    """
    Collect candidate wallpaper paths for a time period.

    Args:
        period: Current time period
        rules: Loaded rule set
        weather: Current weather, or None if unavailable
        policy: How matching entries are combined

    Returns:
        List of file paths (may be empty)
    """
    entries = rules.for_period(period)
    selected = matching_entries(entries, weather, policy)
    logger.debug(
        f"{len(selected)} of {len(entries)} rule entries apply to {period.label}"
    )

    candidates = []
    for entry in selected:
        for pattern in entry.patterns:
            found = expand_pattern(pattern)
            logger.debug(f"{pattern}: {len(found)} file(s)")
            candidates.extend(found)

    logger.info(f"{len(candidates)} file{'s' if len(candidates) > 1 else ''} matched")
    return candidates
