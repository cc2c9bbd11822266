"""Meeting message classification and appointment resolution.

Objective:
    Turn a raw inbox item into a :class:`MeetingNotification` and find the
    calendar :class:`Appointment` it refers to.

Core strategy:
    1. Only two message classes are recognized: meeting request and meeting
       cancellation. The class is read from the expanded ``PR_MESSAGE_CLASS``
       property; Graph's ``meetingMessageType`` is the fallback.
    2. The appointment lookup returns a tagged :class:`AppointmentLookup`
       instead of raising, because a missing appointment (deleted on the
       calendar) is a normal state and a transient Graph failure must only
       skip the one item.

High-level call tree:
    - :func:`classify`
    - :class:`MeetingClassifier`
        - :meth:`MeetingClassifier.classify`
        - :meth:`MeetingClassifier.resolve_appointment`
            - :meth:`GraphClient.get_associated_event`
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests
from pydantic import ValidationError

from .graph_client import GraphClient
from .models import Appointment, MeetingMessage, MeetingNotification, MessageClass

logger = logging.getLogger(__name__)

# Graph eventMessage.meetingMessageType -> MessageClass
_MEETING_MESSAGE_TYPES = {
    "meetingrequest": MessageClass.REQUEST,
    "meetingcancelled": MessageClass.CANCELLATION,
}


class LookupStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAULT = "fault"


@dataclass(frozen=True)
class AppointmentLookup:
    """Result of resolving a notification's appointment.

    Args:
        status: FOUND, ABSENT (deleted on the calendar) or FAULT (transient).
        appointment: The appointment when FOUND.
        error: Error description when FAULT.
    """

    status: LookupStatus
    appointment: Optional[Appointment] = None
    error: Optional[str] = None


def classify(item: MeetingMessage, mailbox: str) -> Optional[MeetingNotification]:
    """Classify an inbox item as a meeting request or cancellation.

    Args:
        item: Raw message from the Inbox.
        mailbox: Graph mailbox path owning the message.

    Returns:
        Optional[MeetingNotification]: The notification, or None when the item
        is not one of the two recognized meeting classes.
    """
    message_class: Optional[MessageClass] = None

    raw_class = item.message_class
    if raw_class is not None:
        try:
            message_class = MessageClass(raw_class)
        except ValueError:
            # e.g. IPM.Schedule.Meeting.Resp.Pos
            return None
    elif item.meeting_message_type:
        message_class = _MEETING_MESSAGE_TYPES.get(item.meeting_message_type.lower())

    if message_class is None:
        return None

    return MeetingNotification(
        id=item.id,
        mailbox=mailbox,
        message_class=message_class,
        subject=item.subject,
        sender_email=item.sender_email,
    )


class MeetingClassifier:
    """
    Classifies meeting messages and resolves their appointments.

    Attributes:
        client: Graph client used for the appointment lookup.
    """

    def __init__(self, client: GraphClient) -> None:
        self.client = client

    def classify(self, item: MeetingMessage, mailbox: str) -> Optional[MeetingNotification]:
        return classify(item, mailbox)

    def resolve_appointment(self, notification: MeetingNotification) -> AppointmentLookup:
        """Resolve the calendar appointment behind a notification.

        Args:
            notification: Classified meeting notification.

        Returns:
            AppointmentLookup: FOUND with the appointment, ABSENT when it was
            deleted from the calendar, FAULT on a transient access failure.
        """
        try:
            appointment = self.client.get_associated_event(notification.mailbox, notification.id)
        except (requests.RequestException, ValidationError) as e:
            logger.warning(f"Failed to resolve appointment for message {notification.id}: {e}")
            return AppointmentLookup(LookupStatus.FAULT, error=str(e))

        if appointment is None:
            logger.debug(f"Appointment for message {notification.id} no longer exists")
            return AppointmentLookup(LookupStatus.ABSENT)

        return AppointmentLookup(LookupStatus.FOUND, appointment=appointment)
