"""
Plaxo contacts API client.

Provides a small interface to the Plaxo address-book REST endpoint for:
- Validating a username/password pair with a one-item probe request
- Downloading and parsing the full contacts feed
- Reporting failures as typed results instead of sentinel values

Credentials are sent with HTTP Basic authentication and redirects are never
followed, so credentials cannot be forwarded to another host.
"""

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth
from requests.exceptions import RequestException

from plaxo_sync import __version__
from plaxo_sync.sync.contact import Contact, FeedParseError, parse_contacts_feed

# Fixed contacts endpoint of the signed-in user
CONTACTS_ENDPOINT = "http://www.plaxo.com/pdata/contacts/@me/@all"

# HTTP timeout for the probe and feed requests
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

# Chunk size used when streaming the feed body
FEED_CHUNK_SIZE = 64 * 1024

USER_AGENT = f"plaxo-sync/{__version__}"

logger = logging.getLogger(__name__)


class PlaxoAPIError(Exception):
    """Base class for Plaxo API failures."""

    pass


class AuthError(PlaxoAPIError):
    """Raised when the login probe does not succeed."""

    pass


class FetchError(PlaxoAPIError):
    """Raised when downloading the contacts feed fails."""

    pass


@dataclass
class AuthResult:
    """Outcome of a credential check."""

    success: bool
    message: Optional[str] = None


@dataclass
class FetchResult:
    """
    Outcome of a full contacts fetch.

    An empty contact list with no error means the account has no contacts;
    a failed fetch always carries the error that caused it.
    """

    contacts: list[Contact] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """True if the feed was downloaded and parsed."""
        return self.error is None

    @property
    def auth_failed(self) -> bool:
        """True if the fetch failed at the login probe."""
        return isinstance(self.error, AuthError)


class PlaxoAPI:
    """
    Client for the Plaxo contacts endpoint.

    Each call opens its own HTTP session and closes it before returning,
    whatever the outcome. No call is retried.

    Attributes:
        request_timeout: Timeout in seconds for each HTTP request

    Usage:
        api = PlaxoAPI(request_timeout=20)

        # Check credentials (raises AuthError)
        api.validate_credentials("jane@example.com", "secret")

        # Fetch everything
        result = api.fetch_contacts("jane@example.com", "secret")
        if result.ok:
            contacts = result.contacts
    """

    def __init__(
        self,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        """
        Initialize the client.

        Args:
            request_timeout: Timeout in seconds for each request (default 30)
            session_factory: Callable creating the HTTP session for a call
        """
        self.request_timeout = request_timeout
        self.session_factory = session_factory

    def _open_session(self, username: str, password: str) -> requests.Session:
        session = self.session_factory()
        session.auth = HTTPBasicAuth(username, password)
        session.headers["User-Agent"] = USER_AGENT
        return session

    def _login(self, session: requests.Session) -> None:
        """
        Probe the endpoint for a single contact to check the credentials.

        Raises:
            AuthError: On any non-200 answer or transport failure
        """
        try:
            response = session.get(
                CONTACTS_ENDPOINT,
                params={"count": 1},
                allow_redirects=False,
                timeout=self.request_timeout,
            )
        except RequestException as e:
            logger.error(f"Login request failed: {e}")
            raise AuthError(str(e)) from e

        with response:
            status_code = response.status_code
            logger.debug(f"Login probe: {status_code} {response.reason}")

        if status_code == 200:
            return
        if status_code == 401:
            raise AuthError("Wrong username or password")
        raise AuthError(f"Error on connecting to Plaxo. Error code: {status_code}")

    def validate_credentials(self, username: str, password: str) -> None:
        """
        Check a username/password pair against the Plaxo endpoint.

        Args:
            username: Plaxo account name
            password: Plaxo password

        Raises:
            AuthError: If the credentials are rejected, the server answers
                with anything but 200 (redirects included), or the request
                fails in transport
        """
        if not username or not password:
            raise AuthError("Username and password are required")

        session = self._open_session(username, password)
        with session:
            self._login(session)
        logger.debug(f"Credentials accepted for {username}")

    def authenticate(self, username: str, password: str) -> AuthResult:
        """
        Check credentials and return the outcome as a value.

        Returns:
            AuthResult with success flag and, on failure, the error message
        """
        try:
            self.validate_credentials(username, password)
        except AuthError as e:
            logger.error(f"Authentication failed for {username}: {e}")
            return AuthResult(success=False, message=str(e))
        return AuthResult(success=True)

    def attempt_auth(
        self, username: str, password: str, executor: Optional[Executor] = None
    ) -> "Future[AuthResult]":
        """
        Check credentials on a background thread.

        Args:
            username: Plaxo account name
            password: Plaxo password
            executor: Executor to run on. If None, a single-thread executor
                is created for this call.

        Returns:
            Future resolving to an AuthResult
        """
        if executor is not None:
            return executor.submit(self.authenticate, username, password)

        own_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="plaxo-auth"
        )
        try:
            return own_executor.submit(self.authenticate, username, password)
        finally:
            own_executor.shutdown(wait=False)

    def _download_feed(self, session: requests.Session) -> list[Contact]:
        try:
            response = session.get(
                CONTACTS_ENDPOINT,
                allow_redirects=False,
                stream=True,
                timeout=self.request_timeout,
            )
        except RequestException as e:
            raise FetchError(f"Contacts request failed: {e}") from e

        with response:
            if response.status_code != 200:
                raise FetchError(
                    f"Contacts request failed with status {response.status_code}"
                )
            try:
                body = b"".join(response.iter_content(chunk_size=FEED_CHUNK_SIZE))
            except RequestException as e:
                raise FetchError(f"Contacts download interrupted: {e}") from e

        return parse_contacts_feed(body)

    def fetch_contacts(self, username: str, password: str) -> FetchResult:
        """
        Download and parse all contacts of an account.

        Logs in with a probe request first, then downloads the unfiltered
        feed on the same session.

        Args:
            username: Plaxo account name
            password: Plaxo password

        Returns:
            FetchResult with the parsed contacts, or with the AuthError,
            FetchError or FeedParseError that stopped the fetch
        """
        try:
            session = self._open_session(username, password)
            with session:
                self._login(session)
                contacts = self._download_feed(session)
        except AuthError as e:
            logger.error(f"Login failed for {username}: {e}")
            return FetchResult(error=e)
        except FetchError as e:
            logger.error(f"Fetching contacts for {username} failed: {e}")
            return FetchResult(error=e)
        except FeedParseError as e:
            logger.error(f"Could not parse contacts feed for {username}: {e}")
            return FetchResult(error=e)

        logger.info(f"Number of contacts: {len(contacts)}")
        return FetchResult(contacts=contacts)

    def fetch_all(self, username: str, password: str) -> list[Contact]:
        """
        Download all contacts, returning an empty list on any failure.

        Use fetch_contacts() to tell an empty account from a failed fetch.
        """
        return self.fetch_contacts(username, password).contacts
