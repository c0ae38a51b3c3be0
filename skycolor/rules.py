"""Wallpaper rules: weather filters and glob patterns for each time period."""

import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from skycolor.errors import ConfigError
from skycolor.time_period import TimePeriod
from skycolor.weather import WeatherCondition, WeatherMain


@dataclass(frozen=True)
class CodeFilter:
    """Matches a weather condition by its numeric id."""

    code: int

    def matches(self, condition: WeatherCondition) -> bool:
        return condition.id == self.code


@dataclass(frozen=True)
class CategoryFilter:
    """Matches a weather condition by its group (e.g. Rain)."""

    main: WeatherMain

    def matches(self, condition: WeatherCondition) -> bool:
        return condition.main is self.main


ConditionFilter = Union[CodeFilter, CategoryFilter]


@dataclass(frozen=True)
class RuleEntry:
    """Glob patterns, optionally guarded by weather filters.

    ``on`` is None for entries that apply regardless of the weather.
    """

    patterns: Tuple[str, ...]
    on: Optional[Tuple[ConditionFilter, ...]] = None

    @property
    def unconditional(self) -> bool:
        return self.on is None


@dataclass(frozen=True)
class RuleSet:
    """Ordered rule entries for every time period."""

    entries: Dict[TimePeriod, Tuple[RuleEntry, ...]]

    def for_period(self, period: TimePeriod) -> Tuple[RuleEntry, ...]:
        return self.entries.get(period, ())

    @classmethod
    def from_dict(cls, data: dict, home: Optional[str] = None) -> "RuleSet":
        """
        Build rules from the period sections of a config document.

        Args:
            data: Mapping containing one list per period name
            home: Home directory used for '~' expansion (defaults to the
                current user's)

        Raises:
            ConfigError: If a section is missing or malformed
        """
        missing = [p.value for p in TimePeriod if p.value not in data]
        if missing:
            raise ConfigError(f"Missing rule sections for: {', '.join(missing)}")

        entries = {}
        for period in TimePeriod:
            section = data[period.value]
            if not isinstance(section, list):
                raise ConfigError(f"'{period.value}' must be a list of rule entries")
            entries[period] = tuple(
                parse_rule_entry(item, f"{period.value}[{i}]", home)
                for i, item in enumerate(section)
            )
        return cls(entries)


def parse_rule_entry(data, where: str, home: Optional[str] = None) -> RuleEntry:
    """Parse one ``{on: [...], patterns: [...]}`` mapping."""
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: expected a mapping with 'patterns'")

    unknown = set(data) - {'on', 'patterns'}
    if unknown:
        raise ConfigError(f"{where}: unknown keys: {', '.join(sorted(unknown))}")

    raw_patterns = data.get('patterns')
    if not isinstance(raw_patterns, list) or not raw_patterns:
        raise ConfigError(f"{where}: 'patterns' must be a non-empty list")

    patterns = []
    for raw in raw_patterns:
        if not isinstance(raw, str):
            raise ConfigError(f"{where}: pattern must be a string, got: {raw!r}")
        try:
            pattern = expand_user(os.path.expandvars(raw), home)
            validate_pattern(pattern)
        except ConfigError as e:
            raise ConfigError(f"{where}: {e}") from e
        patterns.append(pattern)

    on = None
    if data.get('on') is not None:
        raw_on = data['on']
        if not isinstance(raw_on, list):
            raise ConfigError(f"{where}: 'on' must be a list")
        try:
            on = tuple(parse_condition(value) for value in raw_on)
        except ConfigError as e:
            raise ConfigError(f"{where}: {e}") from e

    return RuleEntry(patterns=tuple(patterns), on=on)


def parse_condition(value) -> ConditionFilter:
    """
    Parse a weather filter value.

    Integers are condition ids and strings must be one of the WeatherMain
    group names. Quoted numbers such as "800" are rejected.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid weather condition: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"Weather condition id must not be negative, got: {value}")
        return CodeFilter(value)
    if isinstance(value, str):
        try:
            return CategoryFilter(WeatherMain(value))
        except ValueError:
            pass
        valid = ', '.join(f"`{name}`" for name in WeatherMain.names())
        raise ConfigError(
            f"Unknown weather condition `{value}`, expected integer or one of {valid}"
        )
    raise ConfigError(
        f"Invalid weather condition: {value!r} (expected integer id or group name)"
    )


def expand_user(path: str, home: Optional[str] = None) -> str:
    """
    Expand a leading '~' to the home directory.

    Only '~' on its own or followed by a separator is supported; '~user'
    forms are rejected.
    """
    if path == '~' or path.startswith('~/') or path.startswith('~' + os.sep):
        if home is None:
            home = os.path.expanduser('~')
            if home.startswith('~'):
                raise ConfigError("Home directory not found")
        if path == '~':
            return home
        return home.rstrip('/\\') + path[1:]
    if path.startswith('~'):
        raise ConfigError(f"Unsupported use of '~': {path!r}")
    return path


def validate_pattern(pattern: str) -> None:
    """
    Reject malformed glob patterns.

    Raises:
        ConfigError: On an empty pattern, an unclosed '[' or a '**' that is
            not a whole path component
    """
    if not pattern:
        raise ConfigError("Empty glob pattern")

    for component in pattern.replace('\\', '/').split('/'):
        if '**' in component and component != '**':
            raise ConfigError(
                f"Invalid glob pattern {pattern!r}: "
                "recursive wildcards must form a single path component"
            )

    i = 0
    while i < len(pattern):
        if pattern[i] == '[':
            j = i + 1
            if j < len(pattern) and pattern[j] == '!':
                j += 1
            # a ']' right after the opening bracket is literal
            if j < len(pattern) and pattern[j] == ']':
                j += 1
            close = pattern.find(']', j)
            if close == -1:
                raise ConfigError(f"Invalid glob pattern {pattern!r}: unclosed '['")
            i = close
        i += 1
