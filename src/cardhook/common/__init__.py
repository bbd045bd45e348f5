"""Common utilities for cardhook."""

from cardhook.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
