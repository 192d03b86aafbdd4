# FILE: config/__init__.py
"""Configuration package for the tutor backend.

Contains:
- settings.py: environment-backed TutorSettings
"""

from config.settings import (
    TutorSettings,
    get_settings,
    DEFAULT_MODEL,
    MIN_HMAC_KEY_LENGTH,
)

__all__ = [
    "TutorSettings",
    "get_settings",
    "DEFAULT_MODEL",
    "MIN_HMAC_KEY_LENGTH",
]
