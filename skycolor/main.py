"""Main entry point for Skycolor."""

import argparse
import logging
import random
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from skycolor.config import Config, create_default_config, get_default_config_path
from skycolor.errors import SkycolorError, WallpaperApplyError
from skycolor.resolver import resolve_candidates
from skycolor.selector import select_wallpaper
from skycolor.sun_calculator import SunCalculator
from skycolor.time_period import TimePeriod, get_current_period
from skycolor.wallpaper_manager import WallpaperManager
from skycolor.weather import OpenWeatherMapClient, WeatherSnapshot


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging for stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )


@dataclass
class Selection:
    """Everything that went into picking candidates for one run."""

    now: datetime
    period: TimePeriod
    sun_times: Optional[dict]
    weather: Optional[WeatherSnapshot]
    candidates: List[str]


def make_weather_client(config: Config) -> Optional[OpenWeatherMapClient]:
    """Create a weather client if OpenWeatherMap is configured."""
    if config.openweathermap is None:
        return None
    return OpenWeatherMapClient(
        config.openweathermap.api_key,
        timeout=config.openweathermap.timeout,
        fallback_clear_sky=config.openweathermap.fallback_clear_sky,
    )


def gather_candidates(
    config: Config,
    sun_calc: SunCalculator,
    weather_client: Optional[OpenWeatherMapClient] = None,
    now: Optional[datetime] = None,
    period: Optional[TimePeriod] = None,
) -> Selection:
    """
    Work out the current period and the files eligible for it.

    Args:
        config: Configuration object
        sun_calc: Sun calculator for the configured location
        weather_client: Weather source, or None to skip weather
        now: Current time (defaults to now in the observer's timezone)
        period: Force a period instead of deriving it from the sun

    Returns:
        Selection
    """
    if now is None:
        now = sun_calc.now()

    sun_times = None
    if period is None:
        sun_times = sun_calc.get_sun_times(now)
        period = get_current_period(sun_times, now)
    logger.info(f"It is {period.label}")

    weather = None
    if weather_client is not None:
        weather = weather_client.fetch_current(config.longitude, config.latitude)

    candidates = resolve_candidates(period, config.rules, weather, config.match_policy)
    return Selection(now, period, sun_times, weather, candidates)


def choose_wallpaper(
    config: Config,
    sun_calc: SunCalculator,
    weather_client: Optional[OpenWeatherMapClient] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    period: Optional[TimePeriod] = None,
) -> str:
    """
    Pick a wallpaper for the current time and weather.

    Raises:
        NoMatchError: If no files match the current period
    """
    selection = gather_candidates(config, sun_calc, weather_client, now=now, period=period)
    return select_wallpaper(selection.candidates, selection.period.value, rng)


def run_once(config: Config, period: Optional[str] = None, dry_run: bool = False):
    """
    Choose a wallpaper and set it.

    Args:
        config: Configuration object
        period: Specific period to use, or None for auto-detect
        dry_run: Print the chosen path instead of setting it

    Raises:
        SkycolorError: If anything fails
    """
    sun_calc = SunCalculator(
        config.latitude,
        config.longitude,
        config.timezone,
        polar_fallback=config.polar_fallback,
    )
    forced = TimePeriod(period) if period else None

    wallpaper_path = choose_wallpaper(
        config, sun_calc, make_weather_client(config), period=forced
    )

    if dry_run:
        print(wallpaper_path)
        return

    wallpaper_mgr = WallpaperManager(config.backend, config.monitor)
    if not wallpaper_mgr.set_wallpaper(Path(wallpaper_path)):
        raise WallpaperApplyError(wallpaper_path, f"backend '{wallpaper_mgr.backend}' failed")


def run_test(config: Config):
    """
    Show current period and candidate wallpapers without setting anything.

    Args:
        config: Configuration object
    """
    sun_calc = SunCalculator(
        config.latitude,
        config.longitude,
        config.timezone,
        polar_fallback=config.polar_fallback,
    )
    selection = gather_candidates(config, sun_calc, make_weather_client(config))
    sun_times = selection.sun_times

    print(f"\nCurrent time: {selection.now.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    print(f"\nSun times for today:")
    print(f"  Sunrise:     {sun_times['sunrise'].strftime('%H:%M:%S')}")
    print(f"  Solar noon:  {sun_times['noon'].strftime('%H:%M:%S')}")
    print(f"  Sunset:      {sun_times['sunset'].strftime('%H:%M:%S')}")
    print(f"  Midnight:    {sun_times['midnight'].strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"\nCurrent period: {selection.period.label}")

    if config.openweathermap is None:
        print("Weather: not configured")
    elif selection.weather is None:
        print("Weather: no data")
    else:
        print("Weather:")
        for condition in selection.weather.conditions:
            print(f"  - {condition}")

    print(f"\nCandidates ({len(selection.candidates)}):")
    for candidate in selection.candidates:
        print(f"  {candidate}")
    print()


def init_config(config_path: Path):
    """Generate a configuration template."""
    if config_path.exists():
        response = input(f"Config file already exists at {config_path}. Overwrite? [y/N] ")
        if response.lower() != 'y':
            print("Aborted.")
            return

    create_default_config(config_path)
    print(f"Configuration template created at: {config_path}")
    print("\nPlease edit this file with your location and wallpaper patterns.")


def cli():
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Skycolor - set random wallpapers according to sky color"
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file (default: ~/.config/skycolor/config.yaml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Test command
    subparsers.add_parser('test', help='Show current period and candidate wallpapers')

    # Once command
    once_parser = subparsers.add_parser('once', help='Set wallpaper once and exit (default)')
    once_parser.add_argument(
        '--period',
        choices=[p.value for p in TimePeriod],
        help='Specific period to use (default: auto-detect)'
    )
    once_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print the chosen wallpaper instead of setting it'
    )

    # Init command
    subparsers.add_parser('init', help='Generate configuration template')

    args = parser.parse_args()
    setup_logging(args.verbose)

    config_path = args.config or get_default_config_path()

    # Handle init command (doesn't need config)
    if args.command == 'init':
        init_config(config_path)
        return

    # Load configuration
    try:
        config = Config.load(config_path)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        print(f"Run 'skycolor init' to create a template.", file=sys.stderr)
        sys.exit(1)
    except SkycolorError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Execute command
    try:
        if args.command == 'test':
            run_test(config)
        elif args.command == 'once':
            run_once(config, period=args.period, dry_run=args.dry_run)
        else:
            run_once(config)
    except SkycolorError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    cli()
