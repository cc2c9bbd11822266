"""Pydantic data models used across the application.

Objective:
    Centralize all strongly-typed data structures representing:
    - Meeting messages returned by Microsoft Graph and their classification
    - Calendar appointments referenced by those messages
    - Inbox folders discovered per mailbox
    - Per-item processing results and the run tally

Design notes:
    - These models use Pydantic aliases to match Microsoft Graph field names
      (e.g. ``meetingMessageType`` -> :attr:`MeetingMessage.meeting_message_type`).
    - ``model_config = ConfigDict(populate_by_name=True)`` is used to allow
      constructing models with either alias names or pythonic field names.
    - Graph exposes Outlook's response and meeting status differently from the
      desktop client; :class:`Appointment` maps them onto
      :class:`ResponseStatus` and :class:`MeetingStatus`.

High-level structure:
    - Graph primitives:
        - :class:`EmailAddress`
        - :class:`Recipient`
        - :class:`ExtendedProperty`
        - :class:`DateTimeTimeZone`
        - :class:`GraphResponseStatus`
    - Mailbox primitives:
        - :class:`MeetingMessage`
        - :class:`MeetingNotification`
        - :class:`Appointment`
        - :class:`Inbox`
    - Processing primitives:
        - :class:`ProcessingOutcome`
        - :class:`ProcessingResult`
        - :class:`RunTally`
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field

# MAPI PR_MESSAGE_CLASS as addressed by Graph extended properties
MESSAGE_CLASS_PROPERTY_ID = "String 0x001A"

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def is_message_class_property(property_id: str) -> bool:
    """Match the message class property id however Graph spells the tag.

    Graph echoes ``String 0x001A`` back as ``String 0x1a``.
    """
    parts = property_id.split()
    if len(parts) != 2 or parts[0].lower() != "string":
        return False
    try:
        return int(parts[1], 16) == 0x001A
    except ValueError:
        return False


class MessageClass(str, Enum):
    """The two meeting message classes this tool acts on."""

    REQUEST = "IPM.Schedule.Meeting.Request"
    CANCELLATION = "IPM.Schedule.Meeting.Canceled"


class ResponseStatus(str, Enum):
    """The user's response to a meeting."""

    NONE = "none"
    TENTATIVE = "tentative"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ORGANIZED = "organized"


class MeetingStatus(str, Enum):
    """Meeting status of an appointment, as Outlook reports it."""

    MEETING = "meeting"
    RECEIVED = "received"
    CANCELED = "canceled"
    RECEIVED_AND_CANCELED = "received-and-canceled"


# Graph responseStatus.response -> ResponseStatus
_GRAPH_RESPONSES = {
    "none": ResponseStatus.NONE,
    "notResponded": ResponseStatus.NONE,
    "tentativelyAccepted": ResponseStatus.TENTATIVE,
    "accepted": ResponseStatus.ACCEPTED,
    "declined": ResponseStatus.DECLINED,
    "organizer": ResponseStatus.ORGANIZED,
}


class EmailAddress(BaseModel):
    """Email address with name and address.

    This corresponds to the nested Graph structure:
    ``{"name": "...", "address": "..."}``.
    """

    name: str = ""
    address: str = ""


class Recipient(BaseModel):
    """Recipient wrapper.

    Microsoft Graph wraps addresses under an ``emailAddress`` object, for
    senders and event organizers alike.
    """

    email_address: EmailAddress = Field(default_factory=EmailAddress, alias="emailAddress")

    model_config = ConfigDict(populate_by_name=True)


class ExtendedProperty(BaseModel):
    """Single-value extended property (MAPI property exposed by Graph)."""

    id: str
    value: Optional[str] = None


class DateTimeTimeZone(BaseModel):
    """Graph ``dateTimeTimeZone`` value.

    Graph returns local wall-clock text plus a zone name, with up to seven
    fractional digits (``2024-05-01T09:00:00.0000000``).
    """

    date_time: str = Field(alias="dateTime")
    time_zone: str = Field(default="UTC", alias="timeZone")

    model_config = ConfigDict(populate_by_name=True)

    def to_utc(self) -> datetime:
        """Convert to an aware UTC datetime.

        Returns:
            datetime: The instant in UTC.

        Raises:
            ValueError: If the text or the zone cannot be interpreted.
        """
        text = _FRACTION_RE.sub(r"\1", self.date_time.strip())
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

        if parsed.tzinfo is None:
            zone_name = (self.time_zone or "UTC").strip()
            if zone_name.upper() in ("UTC", "GMT", "ETC/UTC", "Z"):
                parsed = parsed.replace(tzinfo=timezone.utc)
            else:
                try:
                    parsed = parsed.replace(tzinfo=ZoneInfo(zone_name))
                except (ZoneInfoNotFoundError, ValueError) as e:
                    raise ValueError(f"Unsupported time zone: {zone_name!r}") from e

        return parsed.astimezone(timezone.utc)


class GraphResponseStatus(BaseModel):
    """Graph ``responseStatus`` value."""

    response: str = "none"
    time: Optional[str] = None


class MeetingMessage(BaseModel):
    """
    Meeting-related message from an inbox, as returned by Microsoft Graph.

    Attributes:
        id: Unique message ID.
        subject: Message subject line.
        sender: Sender information.
        meeting_message_type: Graph eventMessage type, when present.
        extended_properties: Expanded MAPI properties (message class).
    """

    id: str
    subject: str = ""
    sender: Optional[Recipient] = None
    parent_folder_id: Optional[str] = Field(default=None, alias="parentFolderId")
    meeting_message_type: Optional[str] = Field(default=None, alias="meetingMessageType")
    extended_properties: list[ExtendedProperty] = Field(
        default_factory=list, alias="singleValueExtendedProperties"
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def message_class(self) -> Optional[str]:
        """Return the MAPI message class, if it was expanded.

        Returns:
            Optional[str]: e.g. ``IPM.Schedule.Meeting.Request``.
        """
        for prop in self.extended_properties:
            if is_message_class_property(prop.id):
                return prop.value
        return None

    @property
    def sender_email(self) -> str:
        """Sender email address lowercased, or an empty string if missing."""
        if self.sender and self.sender.email_address:
            return self.sender.email_address.address.lower()
        return ""


class MeetingNotification(BaseModel):
    """
    A classified meeting request or cancellation sitting in an inbox.

    Attributes:
        id: Message ID.
        mailbox: Graph mailbox path owning the message (``/me`` or ``/users/...``).
        message_class: Request or cancellation.
        subject: Message subject.
        sender_email: Sender address.
    """

    id: str
    mailbox: str
    message_class: MessageClass
    subject: str = ""
    sender_email: str = ""

    @property
    def is_cancellation(self) -> bool:
        return self.message_class is MessageClass.CANCELLATION


class Appointment(BaseModel):
    """
    Calendar event referenced by a meeting notification.

    The event is a shared resource: the user may accept, decline or delete it
    on the calendar at any time, independently of this tool.

    Attributes:
        id: Event ID.
        subject: Event subject.
        organizer: Organizer information.
        start: Start in Graph ``dateTimeTimeZone`` form.
        end: End in Graph ``dateTimeTimeZone`` form.
        graph_response_status: Raw Graph response status.
        is_cancelled: Whether the organizer cancelled the meeting.
        is_organizer: Whether the mailbox owner organizes the meeting.
    """

    id: str
    subject: str = ""
    organizer: Optional[Recipient] = None
    start: DateTimeTimeZone
    end: Optional[DateTimeTimeZone] = None
    graph_response_status: GraphResponseStatus = Field(
        default_factory=GraphResponseStatus, alias="responseStatus"
    )
    is_cancelled: bool = Field(default=False, alias="isCancelled")
    is_organizer: bool = Field(default=False, alias="isOrganizer")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def start_utc(self) -> datetime:
        return self.start.to_utc()

    @property
    def end_utc(self) -> Optional[datetime]:
        return self.end.to_utc() if self.end else None

    @property
    def organizer_email(self) -> str:
        if self.organizer and self.organizer.email_address:
            return self.organizer.email_address.address.lower()
        return ""

    @property
    def response_status(self) -> ResponseStatus:
        """Map the Graph response onto :class:`ResponseStatus`.

        Unknown values are treated as no response.
        """
        if self.is_organizer:
            return ResponseStatus.ORGANIZED
        return _GRAPH_RESPONSES.get(self.graph_response_status.response, ResponseStatus.NONE)

    @property
    def meeting_status(self) -> MeetingStatus:
        """Derive Outlook's meeting status from ``isCancelled``/``isOrganizer``."""
        if self.is_cancelled:
            if self.is_organizer:
                return MeetingStatus.CANCELED
            return MeetingStatus.RECEIVED_AND_CANCELED
        if self.is_organizer:
            return MeetingStatus.MEETING
        return MeetingStatus.RECEIVED


class Inbox(BaseModel):
    """
    The default Inbox folder of one mailbox.

    Attributes:
        id: Folder ID.
        display_name: Folder display name.
        mailbox: Graph mailbox path (``/me`` or ``/users/{upn}``).
        mailbox_label: Human-friendly mailbox name for console output.
    """

    id: str
    display_name: str = Field(default="Inbox", alias="displayName")
    mailbox: str = "/me"
    mailbox_label: str = "me"

    model_config = ConfigDict(populate_by_name=True)

    @property
    def folder_path(self) -> str:
        return f"{self.mailbox_label}/{self.display_name}"


class ProcessingOutcome(str, Enum):
    """Per-item result of applying the resolution policy."""

    IGNORED = "ignored"
    MARKED_TENTATIVE = "marked-tentative"
    DELETED_AS_CANCELLATION = "deleted-as-cancellation"
    DELETED_AS_ALREADY_RESOLVED = "deleted-as-already-resolved"
    EXCEPTION = "exception"


class ProcessingResult(BaseModel):
    """
    Result of processing a single meeting notification.

    This is what the console reporter prints for each item. It captures the
    appointment snapshot the decision was based on and whether the
    notification was removed.
    """

    message_id: str
    subject: str = ""
    sender: str = ""
    organizer: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    response_status: Optional[ResponseStatus] = None
    meeting_status: Optional[MeetingStatus] = None
    appointment_found: bool = False
    outcome: ProcessingOutcome
    removed: bool = False
    error: Optional[str] = None


class RunTally(BaseModel):
    """
    Counters accumulated over a run.

    Tallies are immutable values: a sweep returns a delta and the convergence
    loop merges deltas with ``+``.
    """

    ignored: int = 0
    marked_tentative: int = 0
    deleted: int = 0
    exceptions: int = 0

    model_config = ConfigDict(frozen=True)

    def __add__(self, other: "RunTally") -> "RunTally":
        return RunTally(
            ignored=self.ignored + other.ignored,
            marked_tentative=self.marked_tentative + other.marked_tentative,
            deleted=self.deleted + other.deleted,
            exceptions=self.exceptions + other.exceptions,
        )

    @classmethod
    def for_outcome(cls, outcome: ProcessingOutcome, removed: bool) -> "RunTally":
        """Build the single-item delta for an outcome.

        Args:
            outcome: Outcome of the item.
            removed: Whether the notification was actually removed.

        Returns:
            RunTally: Delta to merge into the run tally.
        """
        if outcome is ProcessingOutcome.IGNORED:
            return cls(ignored=1)
        if outcome is ProcessingOutcome.EXCEPTION:
            return cls(exceptions=1)
        return cls(
            marked_tentative=1 if outcome is ProcessingOutcome.MARKED_TENTATIVE else 0,
            deleted=1 if removed else 0,
        )
