"""
Account credential management for Plaxo synchronization.

Provides username/password handling with support for:
- Multiple Plaxo accounts
- Online confirmation of stored passwords
- Secure credential storage in user's home directory
- Signalling when the user has to be prompted for a password
"""

import json
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from plaxo_sync.api.plaxo_api import AuthError, PlaxoAPI
from plaxo_sync.utils.paths import resolve_config_dir

# Credential file naming
CREDENTIALS_PREFIX = "credentials_"
CREDENTIALS_SUFFIX = ".json"

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """
    Raised when an account cannot be authenticated.

    Attributes:
        needs_prompt: True if the user has to enter (new) credentials
    """

    def __init__(self, message: str, needs_prompt: bool = False):
        super().__init__(message)
        self.needs_prompt = needs_prompt


class PlaxoAuth:
    """
    Credential store and authenticator for Plaxo accounts.

    Passwords are kept in one JSON file per account, readable only by the
    owner, and are only stored after the server accepted them.

    Attributes:
        config_dir: Directory for storing credentials
        api: PlaxoAPI used for online confirmation

    Usage:
        auth = PlaxoAuth()

        # Add an account (validates online, then stores)
        auth.add_account('jane@example.com', 'secret')

        # Get a verified password for a sync run
        password = auth.get_auth_token('jane@example.com')
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        api: Optional[PlaxoAPI] = None,
    ):
        """
        Initialize the credential manager.

        Args:
            config_dir: Directory for storing credentials.
                       Defaults to ~/.plaxo-sync/ or $PLAXO_SYNC_CONFIG_DIR
            api: API client used to confirm passwords online
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.api = api if api is not None else PlaxoAPI()

    def _get_credentials_path(self, username: str) -> Path:
        if not username:
            raise ValueError("Username cannot be empty")
        # Percent-encoding keeps distinct usernames in distinct files
        safe_name = quote(username, safe="@")
        return self.config_dir / f"{CREDENTIALS_PREFIX}{safe_name}{CREDENTIALS_SUFFIX}"

    def _ensure_config_dir(self) -> None:
        """Create the configuration directory with mode 700 if missing."""
        if not self.config_dir.exists():
            self.config_dir.mkdir(parents=True, mode=0o700)
            logger.debug(f"Created config directory: {self.config_dir}")

    def save_credentials(self, username: str, password: str) -> None:
        """
        Store the password of an account.

        Args:
            username: Plaxo account name
            password: Password to store
        """
        self._ensure_config_dir()
        path = self._get_credentials_path(username)

        path.write_text(json.dumps({"username": username, "password": password}))
        path.chmod(0o600)
        logger.debug(f"Saved credentials for {username}")

    def load_credentials(self, username: str) -> Optional[str]:
        """
        Load the stored password of an account.

        Returns:
            The password, or None if none is stored or the file is unreadable
        """
        path = self._get_credentials_path(username)
        if not path.exists():
            logger.debug(f"No credentials stored for {username}")
            return None

        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Invalid credentials file for {username}: {e}")
            return None

        password = data.get("password") if isinstance(data, dict) else None
        return password or None

    def list_accounts(self) -> list[str]:
        """Return the names of all accounts with stored credentials."""
        if not self.config_dir.exists():
            return []

        accounts = []
        pattern = f"{CREDENTIALS_PREFIX}*{CREDENTIALS_SUFFIX}"
        for path in sorted(self.config_dir.glob(pattern)):
            try:
                data = json.loads(path.read_text())
            except (OSError, json.JSONDecodeError):
                logger.warning(f"Ignoring unreadable credentials file {path}")
                continue
            if isinstance(data, dict) and data.get("username"):
                accounts.append(data["username"])
        return accounts

    def is_authenticated(self, username: str) -> bool:
        """Check if a password is stored for the account (no network)."""
        return self.load_credentials(username) is not None

    def clear_credentials(self, username: str) -> bool:
        """
        Remove the stored password of an account.

        Returns:
            True if credentials were removed, False if none were stored
        """
        path = self._get_credentials_path(username)
        if path.exists():
            path.unlink()
            logger.info(f"Cleared credentials for {username}")
            return True
        return False

    def confirm_credentials(self, username: str, password: str) -> bool:
        """
        Validate a password online without storing it.

        Returns:
            True if the server accepted the credentials
        """
        return self.api.authenticate(username, password).success

    def add_account(self, username: str, password: str) -> None:
        """
        Validate credentials online and store them on success.

        Raises:
            AuthenticationError: If the server rejected the credentials or
                could not be reached
        """
        try:
            self.api.validate_credentials(username, password)
        except AuthError as e:
            raise AuthenticationError(str(e), needs_prompt=True) from e

        self.save_credentials(username, password)
        logger.info(f"Added account {username}")

    def get_auth_token(self, username: str) -> str:
        """
        Return the stored password after confirming it online.

        Raises:
            AuthenticationError: With needs_prompt=True if no password is
                stored or the stored one is rejected
        """
        password = self.load_credentials(username)
        if password is None:
            raise AuthenticationError(
                f"No credentials stored for {username}", needs_prompt=True
            )

        result = self.api.authenticate(username, password)
        if not result.success:
            raise AuthenticationError(
                f"Stored credentials for {username} were rejected: {result.message}",
                needs_prompt=True,
            )
        return password
