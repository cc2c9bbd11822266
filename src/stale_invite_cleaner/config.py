"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    application (Graph auth, mailbox selection, startup wait and the
    staleness window used by the resolution policy).

Responsibilities:
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).
    - Provide small convenience helpers for derived settings (e.g. parsing the
      comma-separated list of additional mailboxes).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :attr:`Settings.additional_mailbox_list`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Most modules accept a ``Settings`` object explicitly to enable testing;
      the cleaner falls back to :func:`get_settings` when not provided.
"""

from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is flat and human-editable via `.env`. Most fields map
    directly to environment variables.

    Attributes:
        azure_client_id: Azure AD application client ID.
        azure_client_secret: Azure AD application client secret.
        azure_tenant_id: Azure AD tenant ID.
        additional_mailboxes: Extra mailboxes (UPNs) to sweep.
        auto_launch: Start an interactive sign-in when no session is cached.
        client_startup_timeout_seconds: How long to wait for sign-in.
        stale_after_hours: Age after which an unanswered invite is stale.
        page_size: Messages requested per Graph page.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Azure AD Configuration
    azure_client_id: str = Field(..., description="Azure AD application client ID")
    azure_client_secret: Optional[str] = Field(
        default=None, description="Azure AD application client secret (for client credentials flow)"
    )
    azure_tenant_id: str = Field(
        default="consumers", description="Azure AD tenant ID (consumers for personal accounts)"
    )

    outlook_account_username: Optional[str] = Field(
        default=None,
        description=(
            "Preferred Outlook account username to select from the MSAL token cache. "
            "If omitted, the first cached account is used."
        ),
    )

    use_client_credentials: bool = Field(
        default=False,
        description=(
            "Use client credentials flow instead of device code flow. "
            "Requires an organizational tenant (not 'consumers')."
        ),
    )

    target_user_principal_name: Optional[str] = Field(
        default=None,
        description=(
            "User principal name (email) for the mailbox to access when using "
            "client credentials flow. Required when using application permissions."
        ),
    )

    # Mailbox selection
    additional_mailboxes: str = Field(
        default="",
        description="Comma-separated list of additional mailbox UPNs to sweep",
    )

    # Session startup
    auto_launch: bool = Field(
        default=False,
        description=(
            "Start a device-code sign-in when no cached session exists. "
            "When false, a run without a cached session processes nothing."
        ),
    )
    client_startup_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Maximum wait for the sign-in to complete"
    )

    # Processing Settings
    stale_after_hours: float = Field(
        default=24.0,
        gt=0,
        description="Unanswered invites whose meeting started longer ago than this are resolved",
    )
    page_size: int = Field(
        default=50, ge=1, le=1000, description="Messages per Graph page"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def additional_mailbox_list(self) -> list[str]:
        """Parse additional mailboxes from comma-separated string.

        Returns:
            list[str]: Lowercased mailbox UPNs, blanks removed.
        """
        if not self.additional_mailboxes:
            return []
        return [
            mailbox.strip().lower()
            for mailbox in self.additional_mailboxes.split(",")
            if mailbox.strip()
        ]


def get_settings() -> Settings:
    """
    Load and return application settings.

    For tests, construct a :class:`Settings` instance directly or pass a
    mocked settings object.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If required environment variables are missing.
    """
    return Settings()
