"""Configuration package."""

from .settings import CoreSettings, Settings, load_settings

__all__ = ["CoreSettings", "Settings", "load_settings"]
