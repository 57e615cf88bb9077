"""CLI output formatting functions.

This module contains functions for displaying sync results and stored
contacts on the command line.
"""

from typing import TYPE_CHECKING, Optional

import click

if TYPE_CHECKING:
    from plaxo_sync.sync.contact import Address, Contact
    from plaxo_sync.sync.engine import SyncResult


def format_address(address: Optional["Address"]) -> str:
    """Render an address on one line, or '' for a missing/empty address."""
    if address is None or address.is_empty():
        return ""
    city_line = " ".join(p for p in [address.zip, address.city] if p)
    parts = [address.street, city_line, address.state, address.country]
    return ", ".join(p for p in parts if p)


def show_sync_result(result: "SyncResult") -> None:
    """
    Display the outcome of a sync pass.

    Args:
        result: The SyncResult to display
    """
    if not result.success:
        click.echo(click.style(f"Sync failed for {result.account}: ", fg="red"), nl=False)
        click.echo(result.error)
        if result.needs_credentials:
            click.echo(
                f"Run 'plaxo-sync auth --username {result.account}' "
                "to enter new credentials."
            )
        return

    click.echo(click.style(f"Synced {result.account}", fg="green"))
    click.echo(f"  Contacts fetched: {result.contacts_fetched}")
    click.echo(f"  Created:          {result.stats.created}")
    click.echo(f"  Updated:          {result.stats.updated}")
    click.echo(f"  Deleted:          {result.stats.deleted}")
    click.echo(f"  Unchanged:        {result.stats.unchanged}")


def print_contact(contact: "Contact", verbose: bool = False) -> None:
    """
    Print a stored contact.

    Args:
        contact: Contact to print
        verbose: If True, print every non-empty field
    """
    click.echo(f"{contact.display_name}  [{contact.id}]")
    if not verbose:
        return

    rows = [
        ("Company", contact.company),
        ("Title", contact.title),
        ("Birthday", contact.date_of_birth),
        ("Work email", contact.work_email),
        ("Home email", contact.home_email),
        ("Work phone", contact.work_phone),
        ("Home phone", contact.home_phone),
        ("Mobile", contact.cell_work_phone),
        ("Fax", contact.work_fax),
        ("Work URL", contact.work_url),
        ("Home URL", contact.home_url),
        ("Work address", format_address(contact.work_address)),
        ("Home address", format_address(contact.home_address)),
    ]
    for label, value in rows:
        if value:
            click.echo(f"    {label + ':':<14}{value}")
