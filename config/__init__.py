from config.settings import settings, validate_required_settings, Settings

__all__ = ["settings", "validate_required_settings", "Settings"]
