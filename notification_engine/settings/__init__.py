"""Settings resolution: institution overrides merged over category defaults."""

from .resolver import SettingsResolver, UnknownCategory, resolve_field

__all__ = ["SettingsResolver", "UnknownCategory", "resolve_field"]
