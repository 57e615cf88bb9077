"""
Configuration file generator for Plaxo synchronization.

Generates a default configuration file documenting every available option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Plaxo Sync Configuration
# ========================
#
# Default options for plaxo-sync. CLI arguments override these values.
# Save as ~/.plaxo-sync/config.yaml (or in $PLAXO_SYNC_CONFIG_DIR).

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Log DEBUG messages to the console without the detailed format
# Default: false
# debug: true

# Directory for log files
# Default: logs/ inside the configuration directory
# log_dir: /path/to/logs

# Number of daily log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10


# Network Options
# ---------------

# Timeout in seconds for the Plaxo login probe and contacts download
# Default: 30
# request_timeout: 30

# Timeout in seconds for each contact photo download
# Default: 30
# photo_timeout: 30


# Sync Options
# ------------

# Download and store contact photos during sync
# Default: false
# fetch_photos: false

# Local contact database (relative paths are inside the config directory)
# Default: contacts.db
# database_path: contacts.db
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
