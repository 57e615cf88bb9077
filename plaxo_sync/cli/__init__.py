"""CLI package for plaxo_sync."""

from plaxo_sync.cli.formatters import format_address, print_contact, show_sync_result
from plaxo_sync.cli.main import (
    build_api,
    cli,
    get_config_dir,
    get_config_file,
    open_store,
)
from plaxo_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "build_api",
    "cli",
    "format_address",
    "get_config_dir",
    "get_config_file",
    "open_store",
    "print_contact",
    "show_sync_result",
]
