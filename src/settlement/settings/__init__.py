"""Settings provider factory.

Provides get_settings_provider() / set_settings_provider() so tests and
deployments can swap the source of store settings.
"""

from settlement.settings.store import SettingsProvider, StaticSettingsProvider, StoreSettings

_current_provider: SettingsProvider | None = None


def get_settings_provider() -> SettingsProvider:
    """Return the current settings provider. Defaults to environment-backed settings."""
    global _current_provider
    if _current_provider is None:
        _current_provider = StaticSettingsProvider()
    return _current_provider


def set_settings_provider(provider: SettingsProvider) -> None:
    global _current_provider
    _current_provider = provider


def reset_settings_provider() -> None:
    global _current_provider
    _current_provider = None


__all__ = [
    "SettingsProvider",
    "StaticSettingsProvider",
    "StoreSettings",
    "get_settings_provider",
    "reset_settings_provider",
    "set_settings_provider",
]
