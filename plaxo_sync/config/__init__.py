"""
plaxo_sync.config - Configuration management module

Contains configuration loading, validation, and default file generation.
"""

from plaxo_sync.config.generator import generate_default_config, save_config_file
from plaxo_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)

__all__ = [
    "ConfigLoader",
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "generate_default_config",
    "save_config_file",
]
