"""Tests for meeting classification and appointment resolution."""

from unittest.mock import MagicMock

import pytest
import requests

from src.stale_invite_cleaner.classifier import LookupStatus, MeetingClassifier, classify
from src.stale_invite_cleaner.models import (
    Appointment,
    DateTimeTimeZone,
    ExtendedProperty,
    MeetingMessage,
    MeetingNotification,
    MessageClass,
)


def _message(message_class=None, meeting_message_type=None) -> MeetingMessage:
    props = []
    if message_class is not None:
        props.append(ExtendedProperty(id="String 0x1a", value=message_class))
    return MeetingMessage(
        id="msg-1",
        subject="Design review",
        meeting_message_type=meeting_message_type,
        extended_properties=props,
    )


def _notification() -> MeetingNotification:
    return MeetingNotification(id="msg-1", mailbox="/me", message_class=MessageClass.REQUEST)


class TestClassify:
    """Tests for :func:`classify`."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("IPM.Schedule.Meeting.Request", MessageClass.REQUEST),
            ("IPM.Schedule.Meeting.Canceled", MessageClass.CANCELLATION),
        ],
    )
    def test_recognized_message_classes(self, raw, expected):
        notification = classify(_message(raw), "/me")

        assert notification is not None
        assert notification.message_class is expected
        assert notification.mailbox == "/me"
        assert notification.subject == "Design review"

    @pytest.mark.parametrize(
        "raw",
        [
            "IPM.Schedule.Meeting.Resp.Pos",
            "IPM.Schedule.Meeting.Resp.Tent",
            "IPM.Note",
            "IPM.Schedule.Meeting.Request.Extra",
        ],
    )
    def test_other_message_classes_are_not_meetings(self, raw):
        assert classify(_message(raw), "/me") is None

    def test_falls_back_to_meeting_message_type(self):
        notification = classify(_message(meeting_message_type="meetingCancelled"), "/me")

        assert notification is not None
        assert notification.is_cancellation is True

    def test_message_class_wins_over_meeting_message_type(self):
        message = _message("IPM.Schedule.Meeting.Resp.Neg", meeting_message_type="meetingRequest")

        assert classify(message, "/me") is None

    def test_plain_message_is_not_a_meeting(self):
        assert classify(_message(), "/me") is None


class TestResolveAppointment:
    """Tests for :meth:`MeetingClassifier.resolve_appointment`."""

    def test_found(self):
        client = MagicMock()
        appointment = Appointment(
            id="evt-1",
            start=DateTimeTimeZone(date_time="2025-06-01T10:00:00", time_zone="UTC"),
        )
        client.get_associated_event.return_value = appointment

        lookup = MeetingClassifier(client).resolve_appointment(_notification())

        assert lookup.status is LookupStatus.FOUND
        assert lookup.appointment is appointment
        client.get_associated_event.assert_called_once_with("/me", "msg-1")

    def test_deleted_appointment_is_absent_not_an_error(self):
        client = MagicMock()
        client.get_associated_event.return_value = None

        lookup = MeetingClassifier(client).resolve_appointment(_notification())

        assert lookup.status is LookupStatus.ABSENT
        assert lookup.appointment is None
        assert lookup.error is None

    def test_transient_failure_is_a_fault(self):
        client = MagicMock()
        error = requests.HTTPError("503 Server Error")
        error.response = MagicMock(status_code=503)
        client.get_associated_event.side_effect = error

        lookup = MeetingClassifier(client).resolve_appointment(_notification())

        assert lookup.status is LookupStatus.FAULT
        assert "503" in lookup.error

    def test_network_failure_is_a_fault(self):
        client = MagicMock()
        client.get_associated_event.side_effect = requests.ConnectionError("reset")

        lookup = MeetingClassifier(client).resolve_appointment(_notification())

        assert lookup.status is LookupStatus.FAULT
