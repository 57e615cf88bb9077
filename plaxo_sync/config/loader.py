"""
Configuration loader module for Plaxo synchronization.

Reads the optional YAML configuration file (~/.plaxo-sync/config.yaml by
default) and checks the options it knows about. A missing or empty file
is not an error; the CLI then runs with its built-in defaults.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from plaxo_sync.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


@dataclass(frozen=True)
class Option:
    """
    Accepted type and lower bound of a configuration option.

    Attributes:
        types: Accepted Python types (bool is never accepted for numbers)
        minimum: Smallest accepted value, if bounded
        strict: If True, the minimum itself is rejected
    """

    types: tuple[type, ...]
    minimum: Optional[float] = None
    strict: bool = False

    def type_name(self) -> str:
        return " or ".join(t.__name__ for t in self.types)

    def check(self, key: str, value: Any) -> None:
        """Raise ConfigError if value is not acceptable for key."""
        is_bool = isinstance(value, bool)
        if is_bool != (bool in self.types) or not isinstance(value, self.types):
            raise ConfigError(
                f"Invalid type for '{key}': expected {self.type_name()}, "
                f"got {type(value).__name__}"
            )
        if self.minimum is None:
            return
        if value < self.minimum or (self.strict and value == self.minimum):
            op = ">" if self.strict else ">="
            raise ConfigError(f"{key} must be {op} {self.minimum:g}, got {value}")


NUMBER = (int, float)

# Known options; unknown keys are ignored
OPTIONS: dict[str, Option] = {
    "verbose": Option((bool,)),
    "debug": Option((bool,)),
    "log_dir": Option((str,)),
    "log_retention_count": Option((int,), minimum=0),
    "request_timeout": Option(NUMBER, minimum=0, strict=True),
    "photo_timeout": Option(NUMBER, minimum=0, strict=True),
    "fetch_photos": Option((bool,)),
    "database_path": Option((str,)),
}


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()
        timeout = config.get("request_timeout", 30)
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        """Full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """Load the configuration file in config_dir (see load_from_file)."""
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the YAML file

        Returns:
            The parsed mapping; {} if the file is missing or empty

        Raises:
            ConfigError: If the file cannot be read, is not valid YAML, or
                does not hold a mapping
        """
        path = Path(path)
        if not path.is_file():
            logger.debug(f"No configuration file at {path}")
            return {}

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        try:
            config = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(
                "Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}: {sorted(config)}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Check every known option in config; unknown keys are ignored.

        Raises:
            ConfigError: On the first option with a bad type or value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )
        for key, value in config.items():
            option = OPTIONS.get(key)
            if option is not None:
                option.check(key, value)

    def load_and_validate(self) -> dict[str, Any]:
        """Load the configuration file and validate it."""
        config = self.load()
        self.validate(config)
        return config
