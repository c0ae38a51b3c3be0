"""Wallpaper management for the supported desktop backends."""

import logging
import os
import subprocess
import sys
import time
from pathlib import Path


logger = logging.getLogger(__name__)

GNOME_DESKTOPS = ('gnome', 'unity', 'cinnamon', 'budgie', 'pantheon')


def detect_backend() -> str:
    """Guess the wallpaper backend for the running desktop."""
    if sys.platform.startswith('win'):
        return 'windows'
    if sys.platform == 'darwin':
        return 'macos'
    if os.environ.get('HYPRLAND_INSTANCE_SIGNATURE'):
        return 'hyprpaper'
    desktop = os.environ.get('XDG_CURRENT_DESKTOP', '').lower()
    if any(name in desktop for name in GNOME_DESKTOPS):
        return 'gnome'
    return 'feh'


class WallpaperManager:
    """Sets the desktop background through a platform-specific backend."""

    def __init__(self, backend: str = "auto", monitor: str = ""):
        """
        Initialize wallpaper manager.

        Args:
            backend: 'hyprpaper', 'gnome', 'feh', 'macos', 'windows' or 'auto'
            monitor: Monitor name for hyprpaper (empty string = all monitors)
        """
        self.backend = detect_backend() if backend == "auto" else backend
        self.monitor = monitor
        logger.debug(f"Using wallpaper backend: {self.backend}")

    def _run_command(self, cmd: list[str]) -> bool:
        """
        Execute a backend command.

        Args:
            cmd: Command as list of strings

        Returns:
            True if successful, False otherwise
        """
        try:
            subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=5
            )
            return True
        except subprocess.CalledProcessError as e:
            error_msg = (e.stderr + e.stdout).lower() if e.stderr or e.stdout else ""

            # Check if hyprpaper IPC is disabled
            if 'disabled' in error_msg or ('ipc' in error_msg and 'off' in error_msg):
                logger.error(
                    "Hyprpaper IPC appears to be disabled.\n"
                    "To enable IPC:\n"
                    "  1. Edit ~/.config/hypr/hyprpaper.conf\n"
                    "  2. Change 'ipc = off' to 'ipc = on'\n"
                    "  3. Restart hyprpaper: systemctl --user restart hyprpaper.service"
                )
            # Check if it's an unsupported command (e.g., preload in hyprpaper 0.8.x)
            elif 'unknown' in error_msg and 'request' in error_msg:
                logger.debug(f"Command not supported (ignored): {cmd[2] if len(cmd) > 2 else 'unknown'}")
            else:
                logger.error(f"Command failed: {' '.join(cmd)}\n{e.stderr or e.stdout}")
            return False
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out: {' '.join(cmd)}")
            return False
        except FileNotFoundError:
            logger.error(f"Command not found: {cmd[0]}")
            return False
        except OSError as e:
            logger.error(f"Could not run {cmd[0]}: {e}")
            return False

    def check_hyprpaper_running(self) -> bool:
        """
        Check if hyprpaper is running and responsive.

        Returns:
            True if hyprpaper is running, False otherwise
        """
        try:
            result = subprocess.run(
                ['pgrep', '-x', 'hyprpaper'],
                capture_output=True,
                timeout=2
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, OSError):
            return False

    def wait_for_hyprpaper(self, max_wait: int = 5) -> bool:
        """
        Wait for hyprpaper to be ready.

        Args:
            max_wait: Maximum seconds to wait

        Returns:
            True if hyprpaper is ready, False if timeout
        """
        logger.info("Waiting for hyprpaper to be ready...")
        for i in range(max_wait):
            if self.check_hyprpaper_running():
                logger.info("Hyprpaper is ready")
                return True
            time.sleep(1)

        logger.error(f"Hyprpaper not ready after {max_wait} seconds")
        return False

    def set_wallpaper(self, path: Path) -> bool:
        """
        Set wallpaper.

        Args:
            path: Path to wallpaper file

        Returns:
            True if successful, False otherwise
        """
        path = Path(path).absolute()
        if not path.is_file():
            logger.error(f"Wallpaper file not found: {path}")
            return False

        logger.info(f"Setting {path}")
        setter = getattr(self, f"_set_{self.backend}", None)
        if setter is None:
            logger.error(f"Unknown wallpaper backend: {self.backend}")
            return False

        success = setter(path)

        if success:
            logger.info("Successfully set")
        else:
            logger.error(f"Failed to set wallpaper: {path}")

        return success

    def _set_hyprpaper(self, path: Path) -> bool:
        if not self.wait_for_hyprpaper():
            return False
        # Preload is optional, hyprpaper 0.8.x loads images on "wallpaper"
        self._run_command(['hyprctl', 'hyprpaper', 'preload', str(path)])
        # Format is "monitor,path"
        wallpaper_arg = f"{self.monitor},{path}"
        return self._run_command(['hyprctl', 'hyprpaper', 'wallpaper', wallpaper_arg])

    def _set_gnome(self, path: Path) -> bool:
        uri = path.as_uri()
        schema = 'org.gnome.desktop.background'
        if not self._run_command(['gsettings', 'set', schema, 'picture-uri', uri]):
            return False
        # Only exists on GNOME 42+, ignore failure
        self._run_command(['gsettings', 'set', schema, 'picture-uri-dark', uri])
        return True

    def _set_feh(self, path: Path) -> bool:
        return self._run_command(['feh', '--no-fehbg', '--bg-fill', str(path)])

    def _set_macos(self, path: Path) -> bool:
        escaped = str(path).replace('\\', '\\\\').replace('"', '\\"')
        script = f'tell application "System Events" to tell every desktop to set picture to "{escaped}"'
        return self._run_command(['osascript', '-e', script])

    def _set_windows(self, path: Path) -> bool:
        import ctypes

        spi_setdeskwallpaper = 0x0014
        spif_updateinifile = 0x01
        spif_sendchange = 0x02
        ok = ctypes.windll.user32.SystemParametersInfoW(
            spi_setdeskwallpaper, 0, str(path), spif_updateinifile | spif_sendchange
        )
        if not ok:
            logger.error(f"SystemParametersInfoW failed for {path}")
        return bool(ok)
