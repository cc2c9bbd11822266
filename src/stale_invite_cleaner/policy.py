"""Resolution policy for meeting notifications.

Objective:
    Decide what to do with one meeting notification given the state of its
    calendar appointment. The decision is a pure function of the two
    snapshots and the current time; side effects are only *requested* here and
    carried out by the orchestrator.

Decision order (first match wins):
    1. Appointment absent -> already resolved, remove the notification.
    2. Appointment cancelled -> delete it from the calendar, remove the
       notification. Age does not matter.
    3. Meeting started less than ``stale_after`` ago -> ignore, keep the
       notification. This is the only branch that keeps it.
    4. Stale and never accepted/organized -> record a silent tentative
       response, remove the notification.
    5. Stale and already accepted/organized -> remove the notification.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .models import (
    Appointment,
    MeetingNotification,
    MeetingStatus,
    ProcessingOutcome,
    ResponseStatus,
)

DEFAULT_STALE_AFTER = timedelta(hours=24)

CANCELLED_STATUSES = frozenset({MeetingStatus.CANCELED, MeetingStatus.RECEIVED_AND_CANCELED})
RESOLVED_RESPONSES = frozenset({ResponseStatus.ACCEPTED, ResponseStatus.ORGANIZED})


class SideEffect(str, Enum):
    NONE = "none"
    DELETE_APPOINTMENT = "delete-appointment"
    RESPOND_TENTATIVE = "respond-tentative"


@dataclass(frozen=True)
class Decision:
    """What to do with one notification.

    Args:
        outcome: Outcome to report and tally.
        remove_notification: Whether the notification leaves the inbox.
        side_effect: Calendar action to perform first.
    """

    outcome: ProcessingOutcome
    remove_notification: bool
    side_effect: SideEffect = SideEffect.NONE


def is_stale(appointment: Appointment, now: datetime, stale_after: timedelta = DEFAULT_STALE_AFTER) -> bool:
    """True when the meeting started more than ``stale_after`` before ``now``."""
    return appointment.start_utc < now - stale_after


def resolve(
    notification: MeetingNotification,
    appointment: Optional[Appointment],
    now: datetime,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> Decision:
    """Apply the resolution policy to one notification.

    Args:
        notification: The inbox notification.
        appointment: Its appointment, or None when it no longer exists.
        now: Current time (aware, UTC).
        stale_after: Age after which an unanswered meeting is stale.

    Returns:
        Decision: Outcome, removal flag and requested side effect.
    """
    if appointment is None:
        return Decision(ProcessingOutcome.DELETED_AS_ALREADY_RESOLVED, True)

    if appointment.meeting_status in CANCELLED_STATUSES:
        return Decision(
            ProcessingOutcome.DELETED_AS_CANCELLATION,
            True,
            SideEffect.DELETE_APPOINTMENT,
        )

    if not is_stale(appointment, now, stale_after):
        return Decision(ProcessingOutcome.IGNORED, False)

    if appointment.response_status not in RESOLVED_RESPONSES:
        return Decision(
            ProcessingOutcome.MARKED_TENTATIVE,
            True,
            SideEffect.RESPOND_TENTATIVE,
        )

    return Decision(ProcessingOutcome.DELETED_AS_ALREADY_RESOLVED, True)
