"""Inbox discovery.

Objective:
    Enumerate the Inbox folders to sweep. Called once per convergence pass so
    that a mailbox which was unavailable on one pass can be picked up on the
    next.

Responsibilities:
    - Wait once, with a fixed timeout, for a signed-in Graph session before the
      first listing (:meth:`GraphAuthenticator.ensure_session`).
    - Exclude non-personal mailboxes (shared, room, equipment).
    - Skip any mailbox that cannot yield an Inbox, logging and continuing.

High-level call tree:
    - :class:`InboxProvider`
        - :meth:`InboxProvider.list_inboxes`
            - :meth:`InboxProvider._ensure_session` (first call only)
            - :meth:`InboxProvider.mailboxes`
            - :meth:`GraphClient.get_mailbox_purpose`
            - :meth:`GraphClient.get_inbox`

Error handling:
    Session startup failures (timeout, auth errors, Graph unreachable) yield
    an empty list rather than raising, so the run still prints its summary.
"""

import logging
from typing import Optional

from .auth import ClientStartupTimeout, GraphAuthenticator
from .config import Settings
from .graph_client import GraphClient, mailbox_path
from .models import Inbox

logger = logging.getLogger(__name__)

# mailboxSettings.userPurpose values that are not personal mailboxes
EXCLUDED_MAILBOX_PURPOSES = frozenset({"shared", "room", "equipment"})


class InboxProvider:
    """
    Lists the personal Inboxes available to the signed-in identity.

    Attributes:
        settings: Application settings.
        auth: Graph authenticator (owns the startup wait).
        client: Graph client.
    """

    def __init__(self, settings: Settings, auth: GraphAuthenticator, client: GraphClient) -> None:
        self.settings = settings
        self.auth = auth
        self.client = client
        self._session_ready: Optional[bool] = None

    def mailboxes(self) -> list[str]:
        """Return the configured mailboxes, primary first, without duplicates.

        The primary mailbox is ``me`` for delegated sign-in and
        ``TARGET_USER_PRINCIPAL_NAME`` for client credentials (where ``/me``
        does not exist).

        Returns:
            list[str]: Mailbox identifiers (``me`` or UPNs).
        """
        if self.auth.uses_client_credentials:
            primary = (self.settings.target_user_principal_name or "").strip().lower()
            names = [primary] if primary else []
        else:
            names = ["me"]

        for extra in self.settings.additional_mailbox_list:
            if extra not in names:
                names.append(extra)
        return names

    def _ensure_session(self, auto_launch: bool) -> bool:
        """Wait for a signed-in session, once per provider.

        Args:
            auto_launch: Allow starting an interactive sign-in.

        Returns:
            bool: Whether a session is available.
        """
        if self._session_ready is not None:
            return self._session_ready

        try:
            self._session_ready = self.auth.ensure_session(
                auto_launch=auto_launch,
                timeout_seconds=self.settings.client_startup_timeout_seconds,
            )
        except ClientStartupTimeout as e:
            logger.error(f"Giving up on mailbox access: {e}")
            self._session_ready = False
        except Exception as e:
            # Nothing to remediate here; treat as no session for this run.
            logger.error(f"Failed to initialize Graph session: {e}")
            self._session_ready = False

        return self._session_ready

    def list_inboxes(self, auto_launch: bool) -> list[Inbox]:
        """List the Inbox of every personal mailbox.

        Args:
            auto_launch: Allow starting an interactive sign-in when no session
                is cached. Without it, a run with no session finds no inboxes.

        Returns:
            list[Inbox]: Inboxes to sweep, possibly empty.
        """
        inboxes: list[Inbox] = []

        if not self._ensure_session(auto_launch):
            return inboxes

        for name in self.mailboxes():
            mailbox = mailbox_path(name)
            try:
                purpose = self.client.get_mailbox_purpose(mailbox)
                if purpose in EXCLUDED_MAILBOX_PURPOSES:
                    logger.debug(f"Skipping {purpose} mailbox {name}")
                    continue

                inbox = self.client.get_inbox(mailbox, mailbox_label=name)
                logger.debug(f"Found inbox: {inbox.display_name} in mailbox {name}")
                inboxes.append(inbox)
            except Exception as e:
                # Not every mailbox has an Inbox we can open (permissions,
                # mailbox not provisioned); skip it and keep going.
                logger.warning(f"Failed to get Inbox for mailbox {name}: {e}")

        return inboxes
