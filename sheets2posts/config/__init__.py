from .loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, normalize_sheets

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "load_config",
    "normalize_sheets",
]
