"""
Command-line interface for plaxo_sync.

Provides CLI commands for adding Plaxo accounts, synchronizing their
contacts into the local store, and inspecting the stored result.

Usage:
    # Show help
    plaxo-sync --help

    # Add an account (prompts for the password)
    plaxo-sync auth --username jane@example.com

    # Run synchronization
    plaxo-sync sync
    plaxo-sync sync --username jane@example.com --photos

    # Inspect
    plaxo-sync status
    plaxo-sync list --username jane@example.com
"""

import logging
import sys
from pathlib import Path
from typing import Any

import click

from plaxo_sync import __version__
from plaxo_sync.api.plaxo_api import DEFAULT_REQUEST_TIMEOUT, PlaxoAPI
from plaxo_sync.auth.plaxo_auth import AuthenticationError, PlaxoAuth
from plaxo_sync.cli.formatters import print_contact, show_sync_result
from plaxo_sync.config.generator import save_config_file
from plaxo_sync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from plaxo_sync.storage.db import ContactStore
from plaxo_sync.sync.engine import SyncEngine, SyncInProgressError
from plaxo_sync.sync.photo import DOWNLOAD_TIMEOUT
from plaxo_sync.utils import resolve_config_dir, resolve_database_path
from plaxo_sync.utils.logging import (
    DEFAULT_LOG_RETENTION,
    cleanup_old_logs,
    get_default_log_dir,
    get_logger,
    setup_logging,
)


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    return Path(config_file) if config_file else config_dir / DEFAULT_CONFIG_FILE


def load_config(config_dir: Path, config_file: Path) -> dict[str, Any]:
    """
    Load and validate the configuration file.

    A broken file is reported on stderr and ignored, so every command
    still runs with the built-in defaults.
    """
    loader = ConfigLoader(config_dir=config_dir)
    try:
        config = loader.load_from_file(config_file)
        loader.validate(config)
    except ConfigError as e:
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        return {}
    return config


def configure_logging(
    config: dict[str, Any], verbose: bool, config_dir: Path
) -> None:
    """Set up console and file logging, then prune old log files."""
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()
    else:
        log_dir = get_default_log_dir(config_dir)
    setup_logging(
        level=logging.DEBUG if config.get("debug") else None,
        verbose=verbose,
        log_dir=log_dir,
        enable_file_logging=True,
    )
    cleanup_old_logs(
        log_dir=log_dir,
        keep_count=config.get("log_retention_count", DEFAULT_LOG_RETENTION),
    )


def build_api(config: dict[str, Any]) -> PlaxoAPI:
    """Create the API client from configuration."""
    return PlaxoAPI(
        request_timeout=config.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
    )


def open_store(ctx: click.Context) -> ContactStore:
    """Open (and create if needed) the local contact database."""
    config_dir: Path = ctx.obj["config_dir"]
    db_path = resolve_database_path(config_dir, ctx.obj["config"].get("database_path"))
    db_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
    store = ContactStore(str(db_path))
    store.initialize()
    return store


@click.group()
@click.version_option(version=__version__, prog_name="plaxo-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="PLAXO_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.plaxo-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="PLAXO_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Plaxo Contacts Sync.

    Downloads the contacts of your Plaxo accounts and keeps a local copy
    of them up to date.
    """
    ctx.ensure_object(dict)

    resolved_dir = get_config_dir(config_dir)
    resolved_file = get_config_file(resolved_dir, config_file)
    config = load_config(resolved_dir, resolved_file)
    verbose = verbose or config.get("verbose", False)

    ctx.obj.update(
        config_dir=resolved_dir,
        config_file=resolved_file,
        config=config,
        verbose=verbose,
    )
    configure_logging(config, verbose, resolved_dir)


# =============================================================================
# Auth Command
# =============================================================================


@cli.command("auth")
@click.option("--username", "-u", prompt="Plaxo username", help="Plaxo account name.")
@click.option(
    "--password",
    "-p",
    prompt="Plaxo password",
    hide_input=True,
    help="Plaxo password (prompted if omitted).",
)
@click.option(
    "--force",
    is_flag=True,
    help="Replace credentials that are already stored.",
)
@click.pass_context
def auth_command(ctx: click.Context, username: str, password: str, force: bool) -> None:
    """
    Add a Plaxo account.

    Checks the credentials against Plaxo and stores them only if they
    are accepted.

    Examples:

        plaxo-sync auth --username jane@example.com
    """
    logger = get_logger(__name__)
    auth = PlaxoAuth(config_dir=ctx.obj["config_dir"], api=build_api(ctx.obj["config"]))

    if not force and auth.is_authenticated(username):
        click.echo(click.style(f"Account {username} is already set up.", fg="green"))
        click.echo("Use --force to replace the stored credentials.")
        return

    click.echo(f"Checking credentials for {username}...")
    try:
        auth.add_account(username, password)
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        click.echo(click.style(f"Authentication failed: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"Successfully authenticated {username}!", fg="green"))


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show configured accounts and the state of their last sync."""
    auth = PlaxoAuth(config_dir=ctx.obj["config_dir"])
    accounts = auth.list_accounts()

    click.echo(f"Configuration directory: {ctx.obj['config_dir']}")
    if not accounts:
        click.echo(click.style("No accounts configured.", fg="yellow"))
        click.echo("Run 'plaxo-sync auth' to add one.")
        return

    store = open_store(ctx)
    for account in accounts:
        click.echo(f"\n{account}")
        click.echo(f"  Stored contacts: {store.count_contacts(account)}")
        state = store.get_sync_state(account)
        if state is None:
            click.echo("  Last sync:       never")
            continue
        click.echo(f"  Last sync:       {state['last_sync_at']}")
        if state["last_error"]:
            click.echo(
                click.style(f"  Last error:      {state['last_error']}", fg="red")
            )


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--username",
    "-u",
    default=None,
    help="Account to sync (default: all configured accounts).",
)
@click.option(
    "--photos/--no-photos",
    default=None,
    help="Download contact photos (default from config: fetch_photos).",
)
@click.pass_context
def sync_command(ctx: click.Context, username: str | None, photos: bool | None) -> None:
    """
    Download contacts from Plaxo and merge them into the local store.

    Examples:

        plaxo-sync sync

        plaxo-sync sync --username jane@example.com --photos
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]

    api = build_api(config)
    auth = PlaxoAuth(config_dir=ctx.obj["config_dir"], api=api)
    if photos is None:
        photos = config.get("fetch_photos", False)

    engine = SyncEngine(
        api,
        auth,
        open_store(ctx),
        fetch_photos=photos,
        photo_timeout=config.get("photo_timeout", DOWNLOAD_TIMEOUT),
    )

    try:
        if username:
            results = [engine.sync_account(username)]
        else:
            results = engine.sync_all()
    except SyncInProgressError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if not results:
        click.echo(click.style("No accounts configured.", fg="yellow"))
        click.echo("Run 'plaxo-sync auth' to add one.")
        sys.exit(1)

    for result in results:
        show_sync_result(result)

    failed = [r for r in results if not r.success]
    if failed:
        logger.error(f"{len(failed)} of {len(results)} account(s) failed to sync")
        sys.exit(1)


# =============================================================================
# List Command
# =============================================================================


@cli.command("list")
@click.option("--username", "-u", required=True, help="Account to list.")
@click.pass_context
def list_command(ctx: click.Context, username: str) -> None:
    """List the stored contacts of an account."""
    contacts = open_store(ctx).list_contacts(username)
    if not contacts:
        click.echo(f"No contacts stored for {username}.")
        return

    for contact in contacts:
        print_contact(contact, verbose=ctx.obj["verbose"])
    click.echo(f"\n{len(contacts)} contact(s)")


# =============================================================================
# Clear Auth Command
# =============================================================================


@cli.command("clear-auth")
@click.option("--username", "-u", required=True, help="Account to remove.")
@click.option(
    "--purge", is_flag=True, help="Also delete the account's stored contacts."
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def clear_auth_command(ctx: click.Context, username: str, purge: bool, yes: bool) -> None:
    """Remove the stored credentials of an account."""
    if not yes:
        click.confirm(f"Remove credentials for {username}?", abort=True)

    auth = PlaxoAuth(config_dir=ctx.obj["config_dir"])
    if auth.clear_credentials(username):
        click.echo(f"Cleared credentials for {username}.")
    else:
        click.echo(f"No credentials stored for {username}.")

    if purge:
        deleted = open_store(ctx).delete_account(username)
        click.echo(f"Deleted {deleted} stored contact(s).")


# =============================================================================
# Init Config Command
# =============================================================================


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """Write a documented default configuration file."""
    config_file: Path = ctx.obj["config_file"]
    success, error = save_config_file(config_file, overwrite=force)
    if not success:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        sys.exit(1)
    click.echo(click.style(f"Created configuration file: {config_file}", fg="green"))
