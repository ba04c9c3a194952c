from core.settings import Settings

# Settings singleton
_settings = None


def get_settings() -> Settings:
    """Provide the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(**overrides) -> Settings:
    """Initialize settings singleton."""
    global _settings
    _settings = Settings(**overrides)
    return _settings


def clear_settings():
    """Clear settings singleton."""
    global _settings
    _settings = None
