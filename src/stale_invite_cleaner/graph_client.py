"""Microsoft Graph API client for mailbox and calendar operations.

Objective:
    Provide a thin wrapper around the Microsoft Graph endpoints used by this
    project. This module centralizes HTTP request construction, authentication
    headers, paging, and Pydantic validation of responses.

Responsibilities:
    - Issue authenticated HTTP requests to Graph (via :class:`requests`).
    - Resolve a mailbox's default Inbox and its mailbox purpose.
    - Query an Inbox for meeting requests/cancellations only (server-side
      filter on the MAPI message class).
    - Look up the calendar event a meeting message refers to.
    - Perform the idempotent actions the cleaner needs: delete an event,
      record a silent tentative response, delete a message.

High-level call tree:
    - Public API:
        - :meth:`GraphClient.get_mailbox_purpose`
        - :meth:`GraphClient.get_inbox` -> returns :class:`Inbox`
        - :meth:`GraphClient.list_meeting_messages` -> yields :class:`MeetingMessage`
        - :meth:`GraphClient.get_associated_event` -> returns :class:`Appointment`
        - :meth:`GraphClient.delete_event`
        - :meth:`GraphClient.tentatively_accept_event`
        - :meth:`GraphClient.delete_message`
    - Internal helpers:
        - :meth:`GraphClient._make_request` (auth + error handling)
        - :meth:`GraphClient._act` (HTTP outcome -> :class:`ActionResult`)

Graph endpoints used (``{mailbox}`` is ``/me`` or ``/users/{upn}``):
    - ``GET {mailbox}/mailboxSettings``
    - ``GET {mailbox}/mailFolders/inbox``
    - ``GET {mailbox}/mailFolders/{folder_id}/messages``
    - ``GET {mailbox}/messages/{id}/microsoft.graph.eventMessage/event``
    - ``DELETE {mailbox}/events/{id}``
    - ``POST {mailbox}/events/{id}/tentativelyAccept``
    - ``DELETE {mailbox}/messages/{id}``

Error handling:
    - HTTP errors are logged and raised from :meth:`_make_request`.
    - Actions never raise for HTTP/network failures; they report an
      :class:`ActionResult`. A 404 means someone else already did it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Iterator, Optional
from urllib.parse import quote

import requests

from .auth import GraphAuthenticator
from .config import Settings
from .models import (
    MESSAGE_CLASS_PROPERTY_ID,
    Appointment,
    Inbox,
    MeetingMessage,
    MessageClass,
)

logger = logging.getLogger(__name__)

# Server-side predicate: only the two recognized meeting message classes
MEETING_MESSAGE_FILTER = (
    "singleValueExtendedProperties/Any(ep: ep/id eq '{prop}' and "
    "(ep/value eq '{request}' or ep/value eq '{cancellation}'))"
).format(
    prop=MESSAGE_CLASS_PROPERTY_ID,
    request=MessageClass.REQUEST.value,
    cancellation=MessageClass.CANCELLATION.value,
)

MESSAGE_CLASS_EXPAND = (
    f"singleValueExtendedProperties($filter=id eq '{MESSAGE_CLASS_PROPERTY_ID}')"
)


class ActionStatus(str, Enum):
    """Outcome of an action against shared mailbox/calendar state."""

    SUCCESS = "success"
    ALREADY_DONE = "already-done"
    FAULT = "fault"


@dataclass(frozen=True)
class ActionResult:
    """Result of an idempotent Graph action.

    Args:
        status: What happened.
        error: Error description for :attr:`ActionStatus.FAULT`.
    """

    status: ActionStatus
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True unless the action hit a transient fault."""
        return self.status is not ActionStatus.FAULT


def mailbox_path(mailbox: str) -> str:
    """Build the Graph path prefix for a mailbox.

    Args:
        mailbox: ``me`` or a user principal name.

    Returns:
        str: ``/me`` or ``/users/{upn}`` (URL-encoded).
    """
    if not mailbox or mailbox.lower() == "me":
        return "/me"
    return f"/users/{quote(mailbox, safe='@.')}"


class GraphClient:
    """
    Client for the Microsoft Graph mail and calendar endpoints.

    This class is state-light: it depends on
    :class:`src.stale_invite_cleaner.auth.GraphAuthenticator` for tokens and
    builds URLs relative to :attr:`GRAPH_BASE_URL`.

    Attributes:
        settings: Application settings.
        auth: Graph API authenticator.
    """

    GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(self, settings: Settings, auth: GraphAuthenticator) -> None:
        """
        Initialize the Graph client.

        Args:
            settings: Application settings.
            auth: Graph API authenticator.
        """
        self.settings = settings
        self.auth = auth

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
        suppress_statuses: Optional[AbstractSet[int]] = None,
    ) -> dict:
        """Make an authenticated request to Microsoft Graph.

        This helper:
        - Adds auth headers (Bearer token).
        - Applies a default timeout.
        - Raises for non-2xx responses.
        - Returns decoded JSON or ``{}`` for bodiless responses.

        ``endpoint`` may also be an absolute ``@odata.nextLink`` URL.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE).
            endpoint: API endpoint path or absolute URL.
            params: Query parameters.
            json_data: JSON body data.
            suppress_statuses: Statuses that are expected and logged at DEBUG.

        Returns:
            dict: Response JSON data.

        Raises:
            requests.HTTPError: If request fails.
        """
        if endpoint.startswith("https://"):
            url = endpoint
        else:
            url = f"{self.GRAPH_BASE_URL}{endpoint}"
        headers = self.auth.get_auth_headers()

        response = requests.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            json=json_data,
            timeout=30,
        )

        if not response.ok:
            suppress = suppress_statuses and response.status_code in suppress_statuses
            if suppress:
                logger.debug(
                    "Graph API expected non-2xx: %s - %s",
                    response.status_code,
                    response.text,
                )
            else:
                logger.error(
                    f"Graph API error: {response.status_code} - {response.text}"
                )
            response.raise_for_status()

        if response.status_code in (202, 204) or not response.content:
            return {}

        return response.json()

    def _act(self, method: str, endpoint: str, json_data: Optional[dict] = None) -> ActionResult:
        """Run an idempotent action and classify the outcome.

        Args:
            method: HTTP method.
            endpoint: API endpoint path.
            json_data: JSON body data.

        Returns:
            ActionResult: SUCCESS, ALREADY_DONE on 404, FAULT otherwise.
        """
        try:
            self._make_request(method, endpoint, json_data=json_data, suppress_statuses={404})
            return ActionResult(ActionStatus.SUCCESS)
        except requests.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            if status_code == 404:
                logger.debug("%s %s returned 404; already done", method, endpoint)
                return ActionResult(ActionStatus.ALREADY_DONE)
            return ActionResult(ActionStatus.FAULT, error=str(e))
        except requests.RequestException as e:
            logger.warning(f"{method} {endpoint} failed: {e}")
            return ActionResult(ActionStatus.FAULT, error=str(e))

    def get_mailbox_purpose(self, mailbox: str) -> str:
        """Return ``mailboxSettings.userPurpose`` for a mailbox.

        Personal Microsoft accounts do not report a purpose; those are treated
        as ``user``.

        Args:
            mailbox: Graph mailbox path.

        Returns:
            str: Lowercased purpose, e.g. ``user``, ``shared``, ``room``.
        """
        response = self._make_request("GET", f"{mailbox}/mailboxSettings")
        purpose = response.get("userPurpose") or "user"
        return str(purpose).lower()

    def get_inbox(self, mailbox: str, mailbox_label: Optional[str] = None) -> Inbox:
        """Fetch the default Inbox folder of a mailbox.

        Args:
            mailbox: Graph mailbox path.
            mailbox_label: Display label for console output.

        Returns:
            Inbox: The Inbox folder.
        """
        params = {"$select": "id,displayName"}
        response = self._make_request("GET", f"{mailbox}/mailFolders/inbox", params=params)
        return Inbox(
            id=response["id"],
            display_name=response.get("displayName") or "Inbox",
            mailbox=mailbox,
            mailbox_label=mailbox_label or mailbox.rsplit("/", 1)[-1],
        )

    def list_meeting_messages(self, inbox: Inbox) -> Iterator[MeetingMessage]:
        """Yield every meeting request/cancellation in an Inbox.

        Paging follows ``@odata.nextLink``. Messages deleted while paging can
        shift later pages; the convergence loop covers anything skipped.
        Items that fail validation are logged and skipped.

        Args:
            inbox: Inbox to query.

        Yields:
            MeetingMessage: Matching messages in store order.
        """
        safe_folder_id = quote(inbox.id, safe="")
        endpoint = f"{inbox.mailbox}/mailFolders/{safe_folder_id}/messages"
        params: Optional[dict] = {
            "$top": self.settings.page_size,
            "$select": "id,subject,sender,parentFolderId",
            "$filter": MEETING_MESSAGE_FILTER,
            "$expand": MESSAGE_CLASS_EXPAND,
        }

        page = 0
        while endpoint:
            page += 1
            response = self._make_request("GET", endpoint, params=params)
            values = response.get("value", [])
            logger.debug(f"Fetched page {page} ({len(values)} items) from {inbox.folder_path}")

            for item in values:
                try:
                    yield MeetingMessage.model_validate(item)
                except Exception as e:
                    logger.warning(f"Failed to parse message: {e}")
                    continue

            endpoint = response.get("@odata.nextLink")
            # nextLink already carries the query
            params = None

    def get_associated_event(self, mailbox: str, message_id: str) -> Optional[Appointment]:
        """Fetch the calendar event a meeting message refers to.

        Args:
            mailbox: Graph mailbox path.
            message_id: Meeting message ID.

        Returns:
            Optional[Appointment]: The event, or None when it no longer exists
            (deleted on the calendar).

        Raises:
            requests.RequestException: On any other HTTP or network failure.
            pydantic.ValidationError: If the event payload is malformed.
        """
        safe_message_id = quote(message_id, safe="")
        endpoint = f"{mailbox}/messages/{safe_message_id}/microsoft.graph.eventMessage/event"
        params = {
            "$select": "id,subject,organizer,start,end,responseStatus,isCancelled,isOrganizer",
        }

        try:
            response = self._make_request("GET", endpoint, params=params, suppress_statuses={404})
        except requests.HTTPError as e:
            if getattr(getattr(e, "response", None), "status_code", None) == 404:
                return None
            raise

        if not response or not response.get("id"):
            return None
        return Appointment.model_validate(response)

    def delete_event(self, mailbox: str, event_id: str) -> ActionResult:
        """Delete an event from the calendar.

        Args:
            mailbox: Graph mailbox path.
            event_id: Event ID.

        Returns:
            ActionResult: ALREADY_DONE if the event is already gone.
        """
        safe_event_id = quote(event_id, safe="")
        return self._act("DELETE", f"{mailbox}/events/{safe_event_id}")

    def tentatively_accept_event(self, mailbox: str, event_id: str) -> ActionResult:
        """Record a tentative response without notifying the organizer.

        ``sendResponse: false`` stops Graph from generating the response
        message, so nothing reaches the organizer.

        Args:
            mailbox: Graph mailbox path.
            event_id: Event ID.

        Returns:
            ActionResult: ALREADY_DONE if the event is gone.
        """
        safe_event_id = quote(event_id, safe="")
        return self._act(
            "POST",
            f"{mailbox}/events/{safe_event_id}/tentativelyAccept",
            json_data={"sendResponse": False},
        )

    def delete_message(self, mailbox: str, message_id: str) -> ActionResult:
        """Delete a message from the mailbox.

        Args:
            mailbox: Graph mailbox path.
            message_id: Message ID.

        Returns:
            ActionResult: ALREADY_DONE if the message is already gone.
        """
        safe_message_id = quote(message_id, safe="")
        return self._act("DELETE", f"{mailbox}/messages/{safe_message_id}")
