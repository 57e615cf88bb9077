"""
Entry point for running plaxo_sync as a module.

Usage:
    python -m plaxo_sync --help
    python -m plaxo_sync auth --username jane@example.com
    python -m plaxo_sync sync
"""

from plaxo_sync.cli import cli

if __name__ == "__main__":
    cli()
