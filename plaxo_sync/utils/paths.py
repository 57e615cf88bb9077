"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the plaxo-sync configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".plaxo-sync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "PLAXO_SYNC_CONFIG_DIR"

# Default local contact database name
DEFAULT_DATABASE_FILE = "contacts.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. PLAXO_SYNC_CONFIG_DIR environment variable
        3. Default directory (~/.plaxo-sync)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_database_path(
    config_dir: Path, database_path: Path | str | None = None
) -> Path:
    """Return the local contact database path, relative paths under config_dir."""
    if database_path is None:
        return config_dir / DEFAULT_DATABASE_FILE
    path = Path(database_path).expanduser()
    return path if path.is_absolute() else config_dir / path
