"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from src.stale_invite_cleaner.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.chdir("/")
    settings = Settings(azure_client_id="client-id")

    assert settings.azure_tenant_id == "consumers"
    assert settings.auto_launch is False
    assert settings.client_startup_timeout_seconds == 15.0
    assert settings.stale_after_hours == 24.0
    assert settings.additional_mailbox_list == []


def test_additional_mailbox_list_is_normalized():
    settings = Settings(
        azure_client_id="client-id",
        additional_mailboxes=" Team@Example.com, ,ops@example.com ",
    )

    assert settings.additional_mailbox_list == ["team@example.com", "ops@example.com"]


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("AZURE_CLIENT_ID", "from-env")
    monkeypatch.setenv("AUTO_LAUNCH", "true")
    monkeypatch.setenv("STALE_AFTER_HOURS", "48")

    settings = Settings()

    assert settings.azure_client_id == "from-env"
    assert settings.auto_launch is True
    assert settings.stale_after_hours == 48.0


def test_rejects_non_positive_stale_window():
    with pytest.raises(ValidationError):
        Settings(azure_client_id="client-id", stale_after_hours=0)
