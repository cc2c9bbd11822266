from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from src.stale_invite_cleaner import cli
from src.stale_invite_cleaner.models import (
    Inbox,
    MeetingStatus,
    ProcessingOutcome,
    ProcessingResult,
    ResponseStatus,
    RunTally,
)


def test_any_argument_prints_usage_and_exits_zero(capsys) -> None:
    """Arguments are not supported; the tool explains itself and does nothing."""

    with patch.object(cli, "StaleMeetingCleaner") as cleaner_cls:
        assert cli.main(["--help"]) == 0
        assert cli.main(["anything"]) == 0

    cleaner_cls.assert_not_called()
    captured = capsys.readouterr().out
    assert "Simple program to clean stale calendar invites" in captured
    assert "Automatically process meeting cancellations" in captured


def test_main_runs_cleaner_and_prints_summary(capsys) -> None:
    settings = MagicMock()
    settings.log_level = "WARNING"

    with patch.object(cli, "get_settings", return_value=settings), patch.object(
        cli, "StaleMeetingCleaner"
    ) as cleaner_cls:
        cleaner_cls.return_value.run.return_value = RunTally(
            ignored=1, marked_tentative=2, deleted=3, exceptions=0
        )
        assert cli.main([]) == 0

    assert cleaner_cls.call_args.kwargs["settings"] is settings
    assert isinstance(cleaner_cls.call_args.kwargs["reporter"], cli.ConsoleReporter)
    captured = capsys.readouterr().out
    assert "Completed!" in captured
    assert "Marked Tentative: 2" in captured
    assert "Deleted         : 3" in captured


def test_main_reports_fatal_error(capsys) -> None:
    with patch.object(cli, "get_settings", side_effect=RuntimeError("AZURE_CLIENT_ID missing")):
        assert cli.main([]) == 1

    assert "AZURE_CLIENT_ID missing" in capsys.readouterr().out


def test_empty_run_still_prints_summary(capsys) -> None:
    cli.print_summary(RunTally())

    captured = capsys.readouterr().out
    assert "Ignored         : 0" in captured
    assert "Exceptions      : 0" in captured


def test_format_result_for_appointment() -> None:
    result = ProcessingResult(
        message_id="m1",
        subject="Quarterly review",
        sender="olga@example.com",
        organizer="olga@example.com",
        start=datetime(2025, 6, 8, 9, 30, tzinfo=timezone.utc),
        end=datetime(2025, 6, 8, 10, 0, tzinfo=timezone.utc),
        response_status=ResponseStatus.NONE,
        meeting_status=MeetingStatus.RECEIVED,
        appointment_found=True,
        outcome=ProcessingOutcome.MARKED_TENTATIVE,
        removed=True,
    )

    text = "\n".join(cli.format_result(result))

    assert "Quarterly review" in text
    assert "From: olga@example.com" in text
    assert "2025-06-08 09:30 -> 2025-06-08 10:00 UTC" in text
    assert "Response Status: none" in text
    assert "Meeting Status: received" in text
    assert "Marked tentative" in text


def test_format_result_for_deleted_appointment() -> None:
    result = ProcessingResult(
        message_id="m1",
        subject="Old invite",
        sender="bob@example.com",
        outcome=ProcessingOutcome.DELETED_AS_ALREADY_RESOLVED,
        removed=True,
    )

    lines = cli.format_result(result)

    assert lines[0] == "❌ Processing already deleted meeting"
    assert "Cleaned!" in lines[-1]


def test_format_result_shows_error() -> None:
    result = ProcessingResult(
        message_id="m1",
        subject="Flaky",
        outcome=ProcessingOutcome.EXCEPTION,
        error="store unavailable",
    )

    text = "\n".join(cli.format_result(result))

    assert "Could not process meeting" in text
    assert "Error: store unavailable" in text


def test_console_reporter_prints_folder_lines(capsys) -> None:
    reporter = cli.ConsoleReporter()
    inbox = Inbox(id="i1", mailbox="/me", mailbox_label="me")

    reporter.folder_started(inbox)
    reporter.folder_finished(inbox, RunTally())

    captured = capsys.readouterr().out
    assert "Processing Inbox Folder: me/Inbox" in captured
    assert "Finished Processing Inbox Folder: me/Inbox" in captured
