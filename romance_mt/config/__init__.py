"""Configuration module for Romance MT services."""

from romance_mt.config.languages import (
    ROMANCE_LANGUAGES,
    LanguageDirection,
    resolve_direction,
    validate_language_code,
)
from romance_mt.config.settings import MTSettings, settings

__all__ = [
    "settings",
    "MTSettings",
    "LanguageDirection",
    "ROMANCE_LANGUAGES",
    "resolve_direction",
    "validate_language_code",
]
