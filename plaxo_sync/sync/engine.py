"""
Sync engine for Plaxo contacts.

Runs one synchronization pass for an account:
1. Look up the stored credentials
2. Fetch and parse the remote contact feed
3. Merge the contacts into the local store and record the sync state

A failed fetch never touches the stored contacts. Nothing is retried; the
next scheduled pass starts from scratch.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from plaxo_sync.api.plaxo_api import PlaxoAPI
from plaxo_sync.auth.plaxo_auth import PlaxoAuth
from plaxo_sync.storage.db import ContactStore, MergeStats
from plaxo_sync.sync.photo import DOWNLOAD_TIMEOUT

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a sync cannot be started."""

    pass


class SyncInProgressError(SyncError):
    """Raised when a sync for the same account is already running."""

    pass


@dataclass
class SyncResult:
    """
    Result of a sync pass for one account.

    Attributes:
        account: Account that was synced
        contacts_fetched: Number of valid contacts in the remote feed
        stats: Changes applied to the local store
        error: Error message if the pass failed
        needs_credentials: True if the user has to (re-)enter a password
    """

    account: str
    contacts_fetched: int = 0
    stats: MergeStats = field(default_factory=MergeStats)
    error: Optional[str] = None
    needs_credentials: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        """One-line human readable summary."""
        if not self.success:
            return f"{self.account}: failed ({self.error})"
        return (
            f"{self.account}: {self.contacts_fetched} contacts fetched, "
            f"{self.stats.created} created, {self.stats.updated} updated, "
            f"{self.stats.deleted} deleted"
        )


class SyncEngine:
    """
    Orchestrates fetching Plaxo contacts and merging them locally.

    The engine is an ordinary object owned by its caller; it allows one
    sync in flight per account and raises SyncInProgressError otherwise.

    Usage:
        engine = SyncEngine(api, auth, store)
        result = engine.sync_account('jane@example.com')
        if result.needs_credentials:
            ...  # prompt the user
    """

    def __init__(
        self,
        api: PlaxoAPI,
        auth: PlaxoAuth,
        store: ContactStore,
        fetch_photos: bool = False,
        photo_timeout: float = DOWNLOAD_TIMEOUT,
    ):
        """
        Initialize the sync engine.

        Args:
            api: Client for the Plaxo endpoint
            auth: Credential store supplying account passwords
            store: Local contact store receiving the merged contacts
            fetch_photos: If True, download photos of new/changed contacts
            photo_timeout: Timeout in seconds for each photo download
        """
        self.api = api
        self.auth = auth
        self.store = store
        self.fetch_photos = fetch_photos
        self.photo_timeout = photo_timeout
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _account_lock(self, account: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(account, threading.Lock())

    def sync_account(self, account: str) -> SyncResult:
        """
        Run one sync pass for an account.

        Args:
            account: Plaxo account name with stored credentials

        Returns:
            SyncResult describing the outcome

        Raises:
            SyncInProgressError: If the account is already being synced
        """
        lock = self._account_lock(account)
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(f"Sync already running for {account}")
        try:
            return self._sync(account)
        finally:
            lock.release()

    def _sync(self, account: str) -> SyncResult:
        logger.info(f"Starting sync for {account}")
        result = SyncResult(account=account)

        password = self.auth.load_credentials(account)
        if password is None:
            result.error = "No credentials stored"
            result.needs_credentials = True
            logger.warning(f"No credentials stored for {account}")
            return result

        fetched = self.api.fetch_contacts(account, password)
        if not fetched.ok:
            result.error = str(fetched.error)
            result.needs_credentials = fetched.auth_failed
            self.store.update_sync_state(account, last_error=result.error)
            logger.error(f"Sync failed for {account}: {result.error}")
            return result

        result.contacts_fetched = len(fetched.contacts)
        result.stats = self.store.merge_contacts(
            account,
            fetched.contacts,
            with_photos=self.fetch_photos,
            photo_timeout=self.photo_timeout,
        )
        self.store.update_sync_state(
            account, contact_count=result.contacts_fetched
        )
        logger.info(result.summary())
        return result

    def sync_all(self) -> list[SyncResult]:
        """
        Sync every account with stored credentials, one after another.

        An account that is already being synced gets a failed result; the
        remaining accounts are still synced.
        """
        results = []
        for account in self.auth.list_accounts():
            try:
                results.append(self.sync_account(account))
            except SyncInProgressError as e:
                logger.warning(str(e))
                results.append(SyncResult(account=account, error=str(e)))
        return results
