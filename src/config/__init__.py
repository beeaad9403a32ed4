"""Configuration module for the lead intake service."""

from .settings import GeoSettings, Settings, StorageSettings, get_settings

__all__ = [
    "GeoSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
