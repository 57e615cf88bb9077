"""
Unit tests for the sync engine.

Tests a sync pass end to end against a mocked API and credential store
and a real in-memory contact store.
"""

import threading
from unittest.mock import MagicMock

import pytest

from plaxo_sync.api.plaxo_api import AuthError, FetchError, FetchResult
from plaxo_sync.storage.db import ContactStore, MergeStats
from plaxo_sync.sync.contact import Contact, FeedParseError
from plaxo_sync.sync.engine import SyncEngine, SyncInProgressError, SyncResult


def make_contact(remote_id, first="Jane", last="Doe", **kwargs):
    return Contact(id=remote_id, first_name=first, last_name=last, **kwargs)


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def auth():
    mock_auth = MagicMock()
    mock_auth.load_credentials.return_value = "secret"
    mock_auth.list_accounts.return_value = ["jane"]
    return mock_auth


@pytest.fixture
def store():
    contact_store = ContactStore(":memory:")
    contact_store.initialize()
    return contact_store


@pytest.fixture
def engine(api, auth, store):
    return SyncEngine(api, auth, store)


class TestSyncResult:
    """Tests for the SyncResult value."""

    def test_success(self):
        result = SyncResult(account="jane", contacts_fetched=2, stats=MergeStats(created=2))
        assert result.success
        assert "2 contacts fetched" in result.summary()
        assert "2 created" in result.summary()

    def test_failure(self):
        result = SyncResult(account="jane", error="boom")
        assert not result.success
        assert result.summary() == "jane: failed (boom)"


class TestSyncAccount:
    """Tests for SyncEngine.sync_account()."""

    def test_successful_sync(self, engine, api, store):
        """Test that fetched contacts end up in the store."""
        api.fetch_contacts.return_value = FetchResult(
            contacts=[make_contact("1"), make_contact("2")]
        )

        result = engine.sync_account("jane")

        assert result.success
        assert result.contacts_fetched == 2
        assert result.stats.created == 2
        assert store.count_contacts("jane") == 2
        api.fetch_contacts.assert_called_once_with("jane", "secret")

    def test_successful_sync_records_state(self, engine, api, store):
        """Test that a successful sync records the contact count."""
        api.fetch_contacts.return_value = FetchResult(contacts=[make_contact("1")])

        engine.sync_account("jane")

        state = store.get_sync_state("jane")
        assert state["contact_count"] == 1
        assert state["last_error"] is None

    def test_second_sync_applies_changes(self, engine, api, store):
        """Test updates and deletions on a later sync."""
        api.fetch_contacts.return_value = FetchResult(
            contacts=[make_contact("1"), make_contact("2")]
        )
        engine.sync_account("jane")

        api.fetch_contacts.return_value = FetchResult(
            contacts=[make_contact("1", company="Acme")]
        )
        result = engine.sync_account("jane")

        assert result.stats == MergeStats(updated=1, deleted=1)
        assert store.get_contact("jane", "1").company == "Acme"

    def test_no_credentials(self, engine, auth, api):
        """Test that a missing password asks for credentials."""
        auth.load_credentials.return_value = None

        result = engine.sync_account("jane")

        assert not result.success
        assert result.needs_credentials
        api.fetch_contacts.assert_not_called()

    def test_auth_failure_keeps_store(self, engine, api, store):
        """Test that a rejected login leaves stored contacts untouched."""
        store.merge_contacts("jane", [make_contact("1")])
        api.fetch_contacts.return_value = FetchResult(
            error=AuthError("Wrong username or password")
        )

        result = engine.sync_account("jane")

        assert not result.success
        assert result.needs_credentials
        assert result.error == "Wrong username or password"
        assert store.count_contacts("jane") == 1
        assert store.get_sync_state("jane")["last_error"] == "Wrong username or password"

    def test_fetch_failure_does_not_ask_for_credentials(self, engine, api, store):
        """Test that network failures are not reported as bad credentials."""
        store.merge_contacts("jane", [make_contact("1")])
        api.fetch_contacts.return_value = FetchResult(error=FetchError("timeout"))

        result = engine.sync_account("jane")

        assert not result.success
        assert not result.needs_credentials
        assert store.count_contacts("jane") == 1

    def test_parse_failure_keeps_store(self, engine, api, store):
        """Test that an unparseable feed does not empty the store."""
        store.merge_contacts("jane", [make_contact("1")])
        api.fetch_contacts.return_value = FetchResult(error=FeedParseError("bad json"))

        result = engine.sync_account("jane")

        assert result.error == "bad json"
        assert store.count_contacts("jane") == 1

    def test_empty_account_empties_store(self, engine, api, store):
        """Test that a successful empty fetch removes stored contacts."""
        store.merge_contacts("jane", [make_contact("1")])
        api.fetch_contacts.return_value = FetchResult(contacts=[])

        result = engine.sync_account("jane")

        assert result.success
        assert result.stats.deleted == 1
        assert store.count_contacts("jane") == 0

    def test_photos_passed_to_merge(self, api, auth):
        """Test that photo options reach the store."""
        store = MagicMock()
        store.merge_contacts.return_value = MergeStats()
        api.fetch_contacts.return_value = FetchResult(contacts=[])
        engine = SyncEngine(api, auth, store, fetch_photos=True, photo_timeout=7.0)

        engine.sync_account("jane")

        store.merge_contacts.assert_called_once_with(
            "jane", [], with_photos=True, photo_timeout=7.0
        )

    def test_concurrent_sync_of_same_account_rejected(self, engine, api):
        """Test that only one sync per account runs at a time."""
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(username, password):
            started.set()
            release.wait(timeout=5)
            return FetchResult(contacts=[])

        api.fetch_contacts.side_effect = slow_fetch
        worker = threading.Thread(target=engine.sync_account, args=("jane",))
        worker.start()
        try:
            assert started.wait(timeout=5)
            with pytest.raises(SyncInProgressError):
                engine.sync_account("jane")
        finally:
            release.set()
            worker.join(timeout=5)

    def test_lock_released_after_sync(self, engine, api):
        """Test that an account can be synced again after a pass."""
        api.fetch_contacts.return_value = FetchResult(error=FetchError("down"))

        engine.sync_account("jane")
        engine.sync_account("jane")

        assert api.fetch_contacts.call_count == 2


class TestSyncAll:
    """Tests for SyncEngine.sync_all()."""

    def test_syncs_every_account(self, engine, api, auth):
        """Test that all stored accounts are synced in order."""
        auth.list_accounts.return_value = ["adam", "zoe"]
        api.fetch_contacts.return_value = FetchResult(contacts=[])

        results = engine.sync_all()

        assert [r.account for r in results] == ["adam", "zoe"]

    def test_no_accounts(self, engine, auth):
        """Test that nothing happens without accounts."""
        auth.list_accounts.return_value = []

        assert engine.sync_all() == []

    def test_one_failure_does_not_stop_others(self, engine, api, auth):
        """Test that a failing account does not block the rest."""
        auth.list_accounts.return_value = ["adam", "zoe"]
        api.fetch_contacts.side_effect = [
            FetchResult(error=AuthError("Wrong username or password")),
            FetchResult(contacts=[make_contact("1")]),
        ]

        results = engine.sync_all()

        assert [r.success for r in results] == [False, True]

    def test_account_in_progress_does_not_stop_others(self, engine, api, auth):
        """Test that a busy account is reported and the rest still sync."""
        auth.list_accounts.return_value = ["adam", "zoe"]
        api.fetch_contacts.return_value = FetchResult(contacts=[make_contact("1")])
        busy = engine._account_lock("adam")
        busy.acquire()
        try:
            results = engine.sync_all()
        finally:
            busy.release()

        assert [r.account for r in results] == ["adam", "zoe"]
        assert results[0].success is False
        assert "already running" in results[0].error
        assert results[0].needs_credentials is False
        assert results[1].success is True
        api.fetch_contacts.assert_called_once_with("zoe", "secret")
