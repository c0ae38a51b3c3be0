"""Skycolor - set random wallpapers according to sky color."""

__version__ = "0.3.1"
