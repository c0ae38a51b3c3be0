"""Tests for the selection pipeline and command-line interface."""

import random
import sys
from datetime import timedelta

import pytest

from skycolor import main
from skycolor.config import Config
from skycolor.errors import NoMatchError
from skycolor.main import choose_wallpaper, gather_candidates
from skycolor.rules import CategoryFilter
from skycolor.sun_calculator import SunCalculator
from skycolor.time_period import TimePeriod
from skycolor.weather import WeatherCondition, WeatherMain, WeatherSnapshot
from conftest import entry, local, make_rules


def fixed_events(day_start, longitude, latitude):
    return {
        'sunrise': day_start + timedelta(hours=6),
        'noon': day_start + timedelta(hours=12),
        'sunset': day_start + timedelta(hours=18),
        'midnight': day_start - timedelta(minutes=10),
    }


class StubWeather:
    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.calls = []

    def fetch_current(self, longitude, latitude):
        self.calls.append((longitude, latitude))
        return self.snapshot


@pytest.fixture
def sun_calc():
    return SunCalculator(35.0, 139.0, 'Asia/Tokyo', events_fn=fixed_events)


@pytest.fixture
def config(wallpaper_dir):
    rules = make_rules(
        morning=[
            entry(wallpaper_dir / 'a.jpg', on=[CategoryFilter(WeatherMain.RAIN)]),
            entry(wallpaper_dir / 'b.jpg'),
        ],
        evening=[entry(wallpaper_dir / 'c.jpg')],
    )
    return Config(latitude=35.0, longitude=139.0, rules=rules, timezone='Asia/Tokyo')


def test_gather_candidates_by_time(config, sun_calc, wallpaper_dir):
    selection = gather_candidates(config, sun_calc, now=local(19))

    assert selection.period == TimePeriod.EVENING
    assert selection.sun_times['midnight'] == local(23, 50)
    assert selection.weather is None
    assert selection.candidates == [str(wallpaper_dir / 'c.jpg')]


def test_gather_candidates_with_weather(config, sun_calc, wallpaper_dir):
    rain = WeatherSnapshot((WeatherCondition(500, WeatherMain.RAIN, "light rain"),))
    weather = StubWeather(rain)

    selection = gather_candidates(config, sun_calc, weather, now=local(7))

    assert weather.calls == [(139.0, 35.0)]
    assert selection.weather == rain
    assert sorted(selection.candidates) == [str(wallpaper_dir / 'a.jpg'), str(wallpaper_dir / 'b.jpg')]


def test_gather_candidates_weather_unavailable(config, sun_calc, wallpaper_dir):
    selection = gather_candidates(config, sun_calc, StubWeather(None), now=local(7))

    assert selection.candidates == [str(wallpaper_dir / 'b.jpg')]


def test_forced_period_skips_sun_times(config, sun_calc, wallpaper_dir):
    selection = gather_candidates(config, sun_calc, now=local(7), period=TimePeriod.EVENING)

    assert selection.sun_times is None
    assert selection.candidates == [str(wallpaper_dir / 'c.jpg')]


def test_choose_wallpaper(config, sun_calc, wallpaper_dir):
    path = choose_wallpaper(config, sun_calc, rng=random.Random(7), now=local(7))

    assert path == str(wallpaper_dir / 'b.jpg')


def test_choose_wallpaper_no_match(config, sun_calc):
    with pytest.raises(NoMatchError, match="early_afternoon"):
        choose_wallpaper(config, sun_calc, now=local(13))


CONFIG_TEMPLATE = """
location:
  longitude: 139.0
  latitude: 35.0
  timezone: "Asia/Tokyo"
{sections}
"""


def write_config(tmp_path, pattern):
    sections = "".join(
        f"{period.value}:\n  - patterns: ['{pattern}']\n" for period in TimePeriod
    )
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_TEMPLATE.format(sections=sections))
    return path


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["skycolor", *args])
    main.cli()


class FakeManager:
    applied = []
    result = True

    def __init__(self, backend="auto", monitor=""):
        self.backend = "fake"

    def set_wallpaper(self, path):
        FakeManager.applied.append(path)
        return FakeManager.result


@pytest.fixture
def fake_manager(monkeypatch):
    FakeManager.applied = []
    FakeManager.result = True
    monkeypatch.setattr(main, "WallpaperManager", FakeManager)
    return FakeManager


def test_cli_dry_run(monkeypatch, capsys, wallpaper_dir):
    config_path = write_config(wallpaper_dir, str(wallpaper_dir / '*.jpg'))

    run_cli(monkeypatch, "--config", str(config_path), "once", "--dry-run")

    chosen = capsys.readouterr().out.strip()
    assert chosen in [str(wallpaper_dir / name) for name in ('a.jpg', 'b.jpg', 'c.jpg')]


def test_cli_sets_wallpaper(monkeypatch, fake_manager, wallpaper_dir):
    config_path = write_config(wallpaper_dir, str(wallpaper_dir / 'a.jpg'))

    run_cli(monkeypatch, "--config", str(config_path))

    assert [str(p) for p in fake_manager.applied] == [str(wallpaper_dir / 'a.jpg')]


def test_cli_forced_period(monkeypatch, fake_manager, wallpaper_dir):
    config_path = write_config(wallpaper_dir, str(wallpaper_dir / 'b.jpg'))

    run_cli(monkeypatch, "--config", str(config_path), "once", "--period", "evening")

    assert [str(p) for p in fake_manager.applied] == [str(wallpaper_dir / 'b.jpg')]


def test_cli_no_match_exits_non_zero(monkeypatch, capsys, fake_manager, tmp_path):
    config_path = write_config(tmp_path, str(tmp_path / 'nothing-*.jpg'))

    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, "--config", str(config_path))

    assert excinfo.value.code == 1
    assert "No matches found" in capsys.readouterr().err
    assert fake_manager.applied == []


def test_cli_apply_failure_exits_non_zero(monkeypatch, capsys, fake_manager, wallpaper_dir):
    fake_manager.result = False
    config_path = write_config(wallpaper_dir, str(wallpaper_dir / 'a.jpg'))

    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, "--config", str(config_path))

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Failed to set wallpaper" in err
    assert str(wallpaper_dir / 'a.jpg') in err


def test_cli_invalid_config(monkeypatch, capsys, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("location:\n  longitude: 500\n  latitude: 35.0\n")

    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, "--config", str(config_path))

    assert excinfo.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_cli_missing_config(monkeypatch, capsys, tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, "--config", str(tmp_path / "missing.yaml"))

    assert excinfo.value.code == 1
    assert "skycolor init" in capsys.readouterr().err


def test_cli_init(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "create_default_config", lambda path: path.write_text("created"))
    config_path = tmp_path / "config.yaml"

    run_cli(monkeypatch, "--config", str(config_path), "init")

    assert config_path.read_text() == "created"
