"""Shared fixtures for skycolor tests."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytz

from skycolor.rules import RuleEntry, RuleSet
from skycolor.time_period import TimePeriod


TOKYO = pytz.timezone('Asia/Tokyo')


def local(hour: int, minute: int = 0, day: int = 1) -> datetime:
    """Tokyo time on 2024-06-<day>."""
    return TOKYO.localize(datetime(2024, 6, day)) + timedelta(hours=hour, minutes=minute)


@pytest.fixture
def sun_times():
    """Sunrise 06:00, noon 12:00, sunset 18:00, midnight 24:00 local."""
    return {
        'sunrise': local(6),
        'noon': local(12),
        'sunset': local(18),
        'midnight': local(24),
    }


@pytest.fixture
def wallpaper_dir(tmp_path) -> Path:
    """Directory with three jpgs, one png and a subdirectory."""
    for name in ('a.jpg', 'b.jpg', 'c.jpg', 'd.png'):
        (tmp_path / name).write_bytes(b'\xff\xd8\xff')
    (tmp_path / 'sub.jpg').mkdir()
    return tmp_path


def make_rules(**periods) -> RuleSet:
    """RuleSet with the given entries and empty lists for other periods."""
    entries = {period: () for period in TimePeriod}
    for name, items in periods.items():
        entries[TimePeriod(name)] = tuple(items)
    return RuleSet(entries)


def entry(*patterns, on=None) -> RuleEntry:
    return RuleEntry(patterns=tuple(str(p) for p in patterns), on=tuple(on) if on is not None else None)
