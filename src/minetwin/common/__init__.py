"""Common utilities for MineTwin."""

from minetwin.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
