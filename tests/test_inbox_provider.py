"""
Tests for the inbox_provider module.
"""

import pytest
from unittest.mock import MagicMock

from src.stale_invite_cleaner.auth import ClientStartupTimeout
from src.stale_invite_cleaner.inbox_provider import InboxProvider
from src.stale_invite_cleaner.models import Inbox


@pytest.fixture
def settings():
    """Create mock settings."""
    settings = MagicMock()
    settings.additional_mailbox_list = []
    settings.client_startup_timeout_seconds = 15.0
    settings.target_user_principal_name = None
    return settings


@pytest.fixture
def auth():
    """Create mock authenticator with a ready delegated session."""
    auth = MagicMock()
    auth.uses_client_credentials = False
    auth.ensure_session.return_value = True
    return auth


@pytest.fixture
def client():
    """Create mock Graph client returning one Inbox per mailbox."""
    client = MagicMock()
    client.get_mailbox_purpose.return_value = "user"
    client.get_inbox.side_effect = lambda mailbox, mailbox_label=None: Inbox(
        id=f"inbox-{mailbox_label}", mailbox=mailbox, mailbox_label=mailbox_label
    )
    return client


class TestMailboxes:
    """Tests for mailbox selection."""

    def test_delegated_primary_is_me(self, settings, auth, client):
        settings.additional_mailbox_list = ["team@example.com", "me"]

        provider = InboxProvider(settings, auth, client)

        assert provider.mailboxes() == ["me", "team@example.com"]

    def test_client_credentials_primary_is_target_user(self, settings, auth, client):
        auth.uses_client_credentials = True
        settings.target_user_principal_name = "Alex@Example.com"

        provider = InboxProvider(settings, auth, client)

        assert provider.mailboxes() == ["alex@example.com"]


class TestListInboxes:
    """Tests for inbox listing."""

    def test_lists_personal_inboxes(self, settings, auth, client):
        settings.additional_mailbox_list = ["alex@example.com"]

        inboxes = InboxProvider(settings, auth, client).list_inboxes(auto_launch=False)

        assert [i.mailbox for i in inboxes] == ["/me", "/users/alex@example.com"]
        auth.ensure_session.assert_called_once_with(auto_launch=False, timeout_seconds=15.0)

    @pytest.mark.parametrize("purpose", ["shared", "room", "equipment"])
    def test_excludes_non_personal_mailboxes(self, settings, auth, client, purpose):
        settings.additional_mailbox_list = ["team@example.com"]
        client.get_mailbox_purpose.side_effect = lambda mailbox: (
            purpose if mailbox == "/users/team@example.com" else "user"
        )

        inboxes = InboxProvider(settings, auth, client).list_inboxes(auto_launch=False)

        assert [i.mailbox for i in inboxes] == ["/me"]

    def test_failing_mailbox_is_skipped(self, settings, auth, client):
        settings.additional_mailbox_list = ["broken@example.com", "ok@example.com"]

        def get_inbox(mailbox, mailbox_label=None):
            if "broken" in mailbox:
                raise RuntimeError("mailbox not provisioned")
            return Inbox(id=f"inbox-{mailbox_label}", mailbox=mailbox, mailbox_label=mailbox_label)

        client.get_inbox.side_effect = get_inbox

        inboxes = InboxProvider(settings, auth, client).list_inboxes(auto_launch=False)

        assert [i.mailbox_label for i in inboxes] == ["me", "ok@example.com"]

    def test_no_session_without_auto_launch_yields_nothing(self, settings, auth, client):
        auth.ensure_session.return_value = False

        inboxes = InboxProvider(settings, auth, client).list_inboxes(auto_launch=False)

        assert inboxes == []
        client.get_inbox.assert_not_called()

    def test_startup_timeout_yields_nothing(self, settings, auth, client):
        auth.ensure_session.side_effect = ClientStartupTimeout("timed out")

        inboxes = InboxProvider(settings, auth, client).list_inboxes(auto_launch=True)

        assert inboxes == []
        client.get_mailbox_purpose.assert_not_called()

    def test_startup_error_yields_nothing(self, settings, auth, client):
        auth.ensure_session.side_effect = RuntimeError("AADSTS700016")

        assert InboxProvider(settings, auth, client).list_inboxes(auto_launch=True) == []

    def test_session_wait_happens_once(self, settings, auth, client):
        """Every pass re-lists mailboxes, but the startup wait is one-time."""
        provider = InboxProvider(settings, auth, client)

        provider.list_inboxes(auto_launch=True)
        provider.list_inboxes(auto_launch=True)

        auth.ensure_session.assert_called_once()
        assert client.get_inbox.call_count == 2
