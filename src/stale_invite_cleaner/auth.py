"""Microsoft Graph authentication.

Objective:
    Provide a small, reusable authentication layer for Microsoft Graph API
    requests. This module acquires and caches an OAuth2 access token that can
    be attached to HTTP requests, and owns the one-time wait for a signed-in
    session at the start of a run.

Responsibilities:
    - Manage MSAL ``PublicClientApplication`` or ``ConfidentialClientApplication`` lifecycle.
    - Persist and reload the MSAL token cache to/from disk.
    - Establish a session before any mailbox is touched
      (:meth:`GraphAuthenticator.ensure_session`), waiting a bounded time for
      an interactive device-code sign-in when allowed.
    - Provide ready-to-use HTTP headers for Graph API calls.

High-level call tree:
    - :class:`GraphAuthenticator`
        - :meth:`GraphAuthenticator.ensure_session`
            - :meth:`GraphAuthenticator._acquire_silent`
            - :meth:`GraphAuthenticator._wait_for_device_code_sign_in`
        - :meth:`GraphAuthenticator.get_auth_headers`
            - :meth:`GraphAuthenticator.get_access_token`
                - :meth:`GraphAuthenticator._get_token_client_credentials`
                - :meth:`GraphAuthenticator._acquire_silent`
                - :meth:`GraphAuthenticator._get_app`
                    - :meth:`GraphAuthenticator._load_token_cache`
                - :meth:`GraphAuthenticator._save_token_cache`

Operational notes:
    - Client credentials flow is used when ``USE_CLIENT_CREDENTIALS`` is set.
      This requires application permissions in Azure AD.
    - Device-code flow requires user interaction (copy/paste code in browser)
      and is only started when ``AUTO_LAUNCH`` is enabled.
    - Token cache location is stored in the user's home directory.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import msal

from .config import Settings

logger = logging.getLogger(__name__)

# Token cache file location
TOKEN_CACHE_FILE = Path.home() / ".stale_invite_cleaner_token_cache.json"


class ClientStartupTimeout(TimeoutError):
    """Raised when no signed-in session is available within the startup timeout."""


class GraphAuthenticator:
    """
    Handles Microsoft Graph API authentication using MSAL.

    Supports two authentication modes:
    1. Client credentials flow (application permissions) - for unattended scenarios
    2. Device code flow (delegated permissions) - for interactive scenarios

    Attributes:
        settings: Application settings containing Azure AD credentials.
        _app: MSAL public or confidential client application instance.
    """

    # Delegated scopes: read/delete invites, respond to and delete events,
    # read mailbox purpose for shared-mailbox exclusion.
    GRAPH_SCOPES = [
        "https://graph.microsoft.com/Mail.ReadWrite",
        "https://graph.microsoft.com/Calendars.ReadWrite",
        "https://graph.microsoft.com/MailboxSettings.Read",
    ]

    # Application scopes for client credentials flow
    GRAPH_APP_SCOPES = [
        "https://graph.microsoft.com/.default",
    ]

    def __init__(self, settings: Settings) -> None:
        """
        Initialize the authenticator with settings.

        Args:
            settings: Application settings with Azure AD credentials.
        """
        self.settings = settings
        self._app: Optional[msal.PublicClientApplication | msal.ConfidentialClientApplication] = None
        self._use_client_credentials = bool(settings.use_client_credentials)

    @property
    def uses_client_credentials(self) -> bool:
        return self._use_client_credentials

    def _load_token_cache(self) -> msal.SerializableTokenCache:
        """
        Load token cache from file.

        If the file cannot be read or is invalid, the authenticator falls back
        to an empty cache.

        Returns:
            msal.SerializableTokenCache: Token cache instance.
        """
        cache = msal.SerializableTokenCache()
        if TOKEN_CACHE_FILE.exists():
            try:
                cache.deserialize(TOKEN_CACHE_FILE.read_text())
                logger.debug("Loaded token cache from file")
            except Exception as e:
                logger.warning(f"Failed to load token cache: {e}")
        else:
            logger.debug("No token cache file found; starting with empty cache")
        return cache

    def _save_token_cache(self, cache: msal.SerializableTokenCache) -> None:
        """
        Save token cache to file.

        MSAL tracks whether the cache has changed; the file is only written
        when a token has been acquired or refreshed.

        Args:
            cache: Token cache to save.
        """
        if cache.has_state_changed:
            try:
                TOKEN_CACHE_FILE.write_text(cache.serialize())
                logger.debug("Saved token cache to file")
            except OSError as e:
                logger.warning(f"Failed to save token cache: {e}")

    def _get_app(self) -> msal.PublicClientApplication | msal.ConfidentialClientApplication:
        """
        Get or create MSAL client application.

        Returns:
            msal.PublicClientApplication | msal.ConfidentialClientApplication: MSAL app instance.

        Raises:
            RuntimeError: If client credentials are requested without a secret.
        """
        if self._app is None:
            authority = f"https://login.microsoftonline.com/{self.settings.azure_tenant_id}"

            if self._use_client_credentials:
                if not self.settings.azure_client_secret:
                    raise RuntimeError(
                        "use_client_credentials=true requires AZURE_CLIENT_SECRET to be set"
                    )
                self._app = msal.ConfidentialClientApplication(
                    client_id=self.settings.azure_client_id,
                    client_credential=self.settings.azure_client_secret,
                    authority=authority,
                )
                logger.debug("Created MSAL confidential client application (client credentials flow)")
            else:
                cache = self._load_token_cache()
                self._app = msal.PublicClientApplication(
                    client_id=self.settings.azure_client_id,
                    authority=authority,
                    token_cache=cache,
                )
                logger.debug("Created MSAL public client application (device code flow)")
        return self._app

    def _select_account(self, accounts: list[dict]) -> Optional[dict]:
        """Select a cached MSAL account.

        When ``settings.outlook_account_username`` is set, this selects the
        matching account by username (case-insensitive). Otherwise it returns
        the first cached account.

        Args:
            accounts: List of cached MSAL accounts.

        Returns:
            Optional[dict]: Selected account or None when no accounts exist.

        Raises:
            ValueError: If a preferred username is configured but not found.
        """
        if not accounts:
            return None

        preferred = (self.settings.outlook_account_username or "").strip()
        if not preferred:
            return accounts[0]

        preferred_lower = preferred.lower()
        for account in accounts:
            username = str(account.get("username", "")).strip().lower()
            if username and username == preferred_lower:
                return account

        available = [a.get("username") for a in accounts if a.get("username")]
        raise ValueError(
            "Configured OUTLOOK_ACCOUNT_USERNAME was not found in token cache. "
            f"preferred={preferred!r} available={available!r}"
        )

    def _get_token_client_credentials(self) -> str:
        """
        Acquire access token using client credentials flow.

        Returns:
            str: Valid access token for Graph API.

        Raises:
            RuntimeError: If token acquisition fails.
        """
        app = self._get_app()
        logger.debug("Acquiring token using client credentials flow...")

        result = app.acquire_token_for_client(scopes=self.GRAPH_APP_SCOPES)

        if "access_token" in result:
            logger.debug("Successfully acquired token via client credentials")
            return result["access_token"]

        error_description = result.get("error_description", "Unknown error")
        error = result.get("error", "unknown")
        logger.error(f"Failed to acquire token: {error} - {error_description}")
        raise RuntimeError(f"Failed to acquire access token: {error_description}")

    def _acquire_silent(self) -> Optional[str]:
        """Try to get a token for a cached account without user interaction.

        Returns:
            Optional[str]: Access token, or None when no usable account is cached.
        """
        app = self._get_app()
        accounts = app.get_accounts()
        if not accounts:
            logger.debug("No cached accounts found")
            return None

        logger.debug(f"Found {len(accounts)} cached account(s)")
        selected = self._select_account(accounts)
        result = app.acquire_token_silent(scopes=self.GRAPH_SCOPES, account=selected)
        if result and "access_token" in result:
            self._save_token_cache(app.token_cache)
            return result["access_token"]

        logger.debug(
            f"Silent acquisition failed for account {selected.get('username')}: "
            f"{result.get('error') if result else 'no result'}"
        )
        return None

    def _wait_for_device_code_sign_in(self, timeout_seconds: float) -> str:
        """Start a device-code sign-in and wait for it, up to a fixed timeout.

        MSAL polls until ``flow["expires_at"]``; the deadline is pulled in to
        the startup timeout so the wait is bounded.

        Args:
            timeout_seconds: Maximum time to wait for the user.

        Returns:
            str: Access token.

        Raises:
            ClientStartupTimeout: If sign-in did not complete in time.
            RuntimeError: If the device flow cannot be started.
        """
        app = self._get_app()
        flow = app.initiate_device_flow(scopes=self.GRAPH_SCOPES)

        if "user_code" not in flow:
            error = flow.get("error_description", "Unknown error")
            raise RuntimeError(f"Failed to initiate device flow: {error}")

        deadline = time.time() + timeout_seconds
        flow["expires_at"] = min(float(flow.get("expires_at", deadline)), deadline)

        print("\n" + "=" * 60)
        print("AUTHENTICATION REQUIRED")
        print("=" * 60)
        print(f"\n{flow['message']}\n")
        print("=" * 60 + "\n")

        result = app.acquire_token_by_device_flow(flow)

        if "access_token" in result:
            logger.debug("Successfully authenticated")
            self._save_token_cache(app.token_cache)
            return result["access_token"]

        error_description = result.get("error_description", "Unknown error")
        logger.error(f"Sign-in did not complete: {result.get('error', 'unknown')} - {error_description}")
        raise ClientStartupTimeout(
            f"Timed out after {timeout_seconds:g}s waiting for sign-in: {error_description}"
        )

    def ensure_session(self, auto_launch: bool, timeout_seconds: float) -> bool:
        """
        Make sure a signed-in Graph session exists before mailboxes are read.

        Strategy:
            1. Client credentials: acquire an app token (no interaction).
            2. Otherwise, try silent token acquisition from the MSAL cache.
            3. If that fails and ``auto_launch`` is set, start a device-code
               sign-in and wait at most ``timeout_seconds`` for it.

        Args:
            auto_launch: Allow starting an interactive sign-in.
            timeout_seconds: Maximum wait for the interactive sign-in.

        Returns:
            bool: True when a session is available, False when none exists and
            ``auto_launch`` is disabled.

        Raises:
            ClientStartupTimeout: If the interactive sign-in timed out.
        """
        if self._use_client_credentials:
            self._get_token_client_credentials()
            return True

        if self._acquire_silent():
            return True

        if not auto_launch:
            logger.info("No signed-in session found and auto-launch is disabled")
            return False

        logger.info("No signed-in session found; starting device code sign-in")
        self._wait_for_device_code_sign_in(timeout_seconds)
        return True

    def get_access_token(self) -> str:
        """
        Acquire access token for Microsoft Graph API.

        Tokens are cached by MSAL and reused until expiration. No interactive
        sign-in happens here; that is :meth:`ensure_session`'s job.

        Returns:
            str: Valid access token for Graph API.

        Raises:
            RuntimeError: If no token can be acquired.
        """
        if self._use_client_credentials:
            return self._get_token_client_credentials()

        token = self._acquire_silent()
        if not token:
            raise RuntimeError("No signed-in session; cannot acquire access token")
        return token

    def get_auth_headers(self) -> dict[str, str]:
        """
        Get HTTP headers with authorization for Graph API requests.

        Times in event payloads are requested in UTC.

        Returns:
            dict[str, str]: Headers dictionary with Bearer token.
        """
        token = self.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }
