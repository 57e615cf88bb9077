"""
SQLite database module for the local contact store.

Provides persistent storage for synced Plaxo contacts and per-account sync
state, and merges freshly fetched contact lists into the stored set.
"""

import json
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Optional

from plaxo_sync.sync.contact import Address, Contact
from plaxo_sync.sync.photo import DOWNLOAD_TIMEOUT

SCHEMA = """
CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY,
    account TEXT NOT NULL,
    remote_id TEXT NOT NULL,
    name_prefix TEXT NOT NULL DEFAULT '',
    first_name TEXT NOT NULL DEFAULT '',
    last_name TEXT NOT NULL DEFAULT '',
    work_email TEXT NOT NULL DEFAULT '',
    home_email TEXT NOT NULL DEFAULT '',
    image_url TEXT NOT NULL DEFAULT '',
    cell_work_phone TEXT NOT NULL DEFAULT '',
    work_phone TEXT NOT NULL DEFAULT '',
    work_fax TEXT NOT NULL DEFAULT '',
    work_url TEXT NOT NULL DEFAULT '',
    cell_home_phone TEXT NOT NULL DEFAULT '',
    home_phone TEXT NOT NULL DEFAULT '',
    home_fax TEXT NOT NULL DEFAULT '',
    home_url TEXT NOT NULL DEFAULT '',
    company TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL DEFAULT '',
    date_of_birth TEXT NOT NULL DEFAULT '',
    work_address TEXT,
    home_address TEXT,
    photo BLOB,
    content_hash TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(account, remote_id)
);

CREATE INDEX IF NOT EXISTS idx_contacts_account ON contacts(account);

CREATE TABLE IF NOT EXISTS sync_state (
    id INTEGER PRIMARY KEY,
    account TEXT NOT NULL,
    last_sync_at TIMESTAMP,
    last_error TEXT,
    contact_count INTEGER DEFAULT 0,
    UNIQUE(account)
);
"""

# Contact string fields stored one column each
STRING_FIELDS = [
    f.name
    for f in fields(Contact)
    if f.name not in ("id", "work_address", "home_address")
    and not f.name.startswith("_")
]

ADDRESS_FIELDS = ["work_address", "home_address"]


@dataclass
class MergeStats:
    """Counts of changes applied by a merge."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0

    @property
    def total_changes(self) -> int:
        return self.created + self.updated + self.deleted


def _encode_address(address: Optional[Address]) -> Optional[str]:
    if address is None:
        return None
    return json.dumps(address.to_dict(), sort_keys=True)


def _decode_address(value: Optional[str]) -> Optional[Address]:
    if not value:
        return None
    return Address.from_dict(json.loads(value))


class ContactStore:
    """
    SQLite store for contacts downloaded from Plaxo.

    Contacts are keyed by (account, remote id). Merging a fetched list
    creates new contacts, updates changed ones (by content hash) and deletes
    contacts that no longer exist remotely.

    Usage:
        store = ContactStore('/path/to/contacts.db')
        store.initialize()
        stats = store.merge_contacts('jane@example.com', contacts)

        # Or use in-memory for testing:
        store = ContactStore(':memory:')
        store.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(
                    ":memory:", check_same_thread=False
                )
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back on error.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the contacts and sync_state tables if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Contact Operations
    # =========================================================================

    def _row_to_contact(self, row: sqlite3.Row) -> Contact:
        contact = Contact(id=row["remote_id"])
        for name in STRING_FIELDS:
            setattr(contact, name, row[name])
        for name in ADDRESS_FIELDS:
            setattr(contact, name, _decode_address(row[name]))
        # Stored contacts never download; a NULL photo means no photo
        photo = row["photo"]
        contact.set_image(bytes(photo) if photo is not None else None)
        return contact

    def get_contact(self, account: str, remote_id: str) -> Optional[Contact]:
        """
        Get a stored contact.

        Returns:
            Contact, or None if not found
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM contacts WHERE account = ? AND remote_id = ?",
                (account, remote_id),
            ).fetchone()
            return self._row_to_contact(row) if row else None

    def list_contacts(self, account: str) -> list[Contact]:
        """Return all stored contacts of an account, ordered by name."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM contacts WHERE account = ? "
                "ORDER BY last_name, first_name, remote_id",
                (account,),
            ).fetchall()
            return [self._row_to_contact(row) for row in rows]

    def count_contacts(self, account: Optional[str] = None) -> int:
        """Count stored contacts, optionally for a single account."""
        with self.connection() as conn:
            if account is None:
                cursor = conn.execute("SELECT COUNT(*) FROM contacts")
            else:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM contacts WHERE account = ?", (account,)
                )
            result = cursor.fetchone()
            return result[0] if result else 0

    def _contact_values(self, contact: Contact) -> dict[str, Any]:
        values: dict[str, Any] = {name: getattr(contact, name) for name in STRING_FIELDS}
        for name in ADDRESS_FIELDS:
            values[name] = _encode_address(getattr(contact, name))
        values["content_hash"] = contact.content_hash()
        return values

    def _stored_state(self, account: str) -> dict[str, sqlite3.Row]:
        with self.connection() as conn:
            return {
                row["remote_id"]: row
                for row in conn.execute(
                    "SELECT remote_id, content_hash, image_url, "
                    "photo IS NOT NULL AS has_photo "
                    "FROM contacts WHERE account = ?",
                    (account,),
                )
            }

    def merge_contacts(
        self,
        account: str,
        contacts: list[Contact],
        with_photos: bool = False,
        photo_timeout: float = DOWNLOAD_TIMEOUT,
    ) -> MergeStats:
        """
        Merge a freshly fetched contact list into the store.

        Photos are downloaded before the write transaction starts, so the
        database is only locked for the writes themselves. Without photos,
        a contact whose image_url changed loses its stored photo.

        Args:
            account: Account the contacts belong to
            contacts: Complete remote contact list of the account
            with_photos: If True, resolve and store the photo of every new
                or changed contact, and of unchanged contacts that have an
                image_url but no stored photo
            photo_timeout: Timeout in seconds for each photo download

        Returns:
            MergeStats with created/updated/deleted/unchanged counts
        """
        stats = MergeStats()
        stored = self._stored_state(account)

        changed: list[Contact] = []
        missing_photo: list[Contact] = []
        seen: set[str] = set()
        for contact in contacts:
            if contact.id in seen:
                continue
            seen.add(contact.id)

            row = stored.get(contact.id)
            if row is None or row["content_hash"] != contact.content_hash():
                changed.append(contact)
                continue
            stats.unchanged += 1
            if with_photos and contact.image_url and not row["has_photo"]:
                missing_photo.append(contact)

        photos: dict[str, Optional[bytes]] = {}
        if with_photos:
            for contact in changed + missing_photo:
                photos[contact.id] = contact.fetch_image(timeout=photo_timeout)

        with self.connection() as conn:
            for contact in changed:
                values = self._contact_values(contact)
                row = stored.get(contact.id)
                if with_photos:
                    values["photo"] = photos[contact.id]
                elif row is not None and row["image_url"] != contact.image_url:
                    values["photo"] = None

                if row is None:
                    columns = ["account", "remote_id", *values]
                    placeholders = ", ".join("?" for _ in columns)
                    conn.execute(
                        f"INSERT INTO contacts ({', '.join(columns)}) "
                        f"VALUES ({placeholders})",
                        (account, contact.id, *values.values()),
                    )
                    stats.created += 1
                else:
                    assignments = ", ".join(f"{name} = ?" for name in values)
                    conn.execute(
                        f"UPDATE contacts SET {assignments}, "
                        "updated_at = CURRENT_TIMESTAMP "
                        "WHERE account = ? AND remote_id = ?",
                        (*values.values(), account, contact.id),
                    )
                    stats.updated += 1

            for contact in missing_photo:
                if photos[contact.id] is not None:
                    conn.execute(
                        "UPDATE contacts SET photo = ? "
                        "WHERE account = ? AND remote_id = ?",
                        (photos[contact.id], account, contact.id),
                    )

            for remote_id in set(stored) - seen:
                conn.execute(
                    "DELETE FROM contacts WHERE account = ? AND remote_id = ?",
                    (account, remote_id),
                )
                stats.deleted += 1

        return stats

    def delete_account(self, account: str) -> int:
        """
        Delete all stored contacts and sync state of an account.

        Returns:
            Number of contacts deleted
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM contacts WHERE account = ?", (account,))
            conn.execute("DELETE FROM sync_state WHERE account = ?", (account,))
            return cursor.rowcount

    # =========================================================================
    # Sync State Operations
    # =========================================================================

    def get_sync_state(self, account: str) -> Optional[dict[str, Any]]:
        """
        Get sync state for an account.

        Returns:
            Dictionary with last_sync_at, last_error and contact_count,
            or None if the account never synced
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT last_sync_at, last_error, contact_count "
                "FROM sync_state WHERE account = ?",
                (account,),
            ).fetchone()
            return dict(row) if row else None

    def update_sync_state(
        self,
        account: str,
        last_sync_at: Optional[datetime] = None,
        last_error: Optional[str] = None,
        contact_count: Optional[int] = None,
    ) -> None:
        """
        Update or insert sync state for an account.

        Args:
            account: The account name
            last_sync_at: Timestamp of the sync (defaults to current time)
            last_error: Error of the sync, or None if it succeeded
            contact_count: Number of contacts fetched; None keeps the old value
        """
        if last_sync_at is None:
            last_sync_at = datetime.now()

        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO sync_state (account, last_sync_at, last_error, contact_count)
                VALUES (?, ?, ?, COALESCE(?, 0))
                ON CONFLICT(account) DO UPDATE SET
                    last_sync_at = excluded.last_sync_at,
                    last_error = excluded.last_error,
                    contact_count = COALESCE(?, sync_state.contact_count)
                """,
                (
                    account,
                    last_sync_at.isoformat(sep=" ", timespec="seconds"),
                    last_error,
                    contact_count,
                    contact_count,
                ),
            )
