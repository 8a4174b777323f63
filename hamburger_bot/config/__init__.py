"""
Configuration Module.

YAML + .env configuration loading validated with pydantic.
"""

from .exceptions import ConfigFileNotFoundError, ConfigParseError, ConfigValidationError
from .loader import ConfigLoader, load_config, load_grid_configs
from .models import BotSettings, BotsFileConfig, FeedSettings

__all__ = [
    "ConfigLoader",
    "load_config",
    "load_grid_configs",
    "BotSettings",
    "BotsFileConfig",
    "FeedSettings",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
]
