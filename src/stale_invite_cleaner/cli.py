"""Command-line interface (CLI) entrypoint.

Objective:
    Provide a human-friendly CLI wrapper around
    :class:`src.stale_invite_cleaner.orchestrator.StaleMeetingCleaner`.

Responsibilities:
    - Print usage and exit when given any argument; the tool takes none.
    - Configure logging (quieting chatty HTTP/auth libraries).
    - Run the cleaner, printing a status line per folder and per item, then
      the end-of-run summary.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
        - instantiate :class:`StaleMeetingCleaner` with :class:`ConsoleReporter`
        - :meth:`StaleMeetingCleaner.run`
        - :func:`print_summary`

Operational notes:
    - This module supports being run both as a package module
      (``python -m src.stale_invite_cleaner.cli``) and as a script
      (``python src/stale_invite_cleaner/cli.py``). The import fallback handles
      the script case.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

try:
    from .config import get_settings
    from .models import Inbox, ProcessingOutcome, ProcessingResult, RunTally
    from .orchestrator import StaleMeetingCleaner, SweepReporter
except ImportError:  # pragma: no cover
    src_root = Path(__file__).resolve().parents[1]
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))

    from stale_invite_cleaner.config import get_settings
    from stale_invite_cleaner.models import Inbox, ProcessingOutcome, ProcessingResult, RunTally
    from stale_invite_cleaner.orchestrator import StaleMeetingCleaner, SweepReporter


USAGE = """
Simple program to clean stale calendar invites sitting in your inbox. This tool will:

  1. Delete unanswered calendar invites if the meeting happened over 24 hours ago
     -> Note: meeting will remain on your calendar, just marked as tentative
  2. Delete calendar invites that have already been accepted (perhaps manually on your calendar)
  3. Automatically process meeting cancellations
"""

# Libraries that log every request/token refresh at INFO
_NOISY_LOGGERS = ("msal", "urllib3")

_OUTCOME_LABELS = {
    ProcessingOutcome.IGNORED: "🙈 Ignored",
    ProcessingOutcome.MARKED_TENTATIVE: "⛺ Marked tentative, cleaned!",
    ProcessingOutcome.DELETED_AS_CANCELLATION: "❌ Cancellation processed, cleaned!",
    ProcessingOutcome.DELETED_AS_ALREADY_RESOLVED: "✅ Cleaned!",
    ProcessingOutcome.EXCEPTION: "💥 Skipped",
}


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Only show library request logs when running in DEBUG mode.
    if numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def format_result(result: ProcessingResult) -> list[str]:
    """Render one processed item as console lines.

    Args:
        result: Item result.

    Returns:
        list[str]: Lines to print.
    """
    lines: list[str] = []
    if result.outcome is ProcessingOutcome.EXCEPTION and not result.appointment_found:
        lines.append("💥 Could not process meeting")
        lines.append(f"  ✉️ {result.subject}")
        lines.append(f"  📧 From: {result.sender}")
    elif not result.appointment_found:
        lines.append("❌ Processing already deleted meeting")
        lines.append(f"  ✉️ {result.subject}")
        lines.append(f"  📧 From: {result.sender}")
    else:
        lines.append(f"✉️ {result.subject}")
        lines.append(f"  📧 From: {result.organizer or result.sender}")
        start = result.start.strftime("%Y-%m-%d %H:%M") if result.start else "?"
        end = result.end.strftime("%Y-%m-%d %H:%M") if result.end else "?"
        lines.append(f"  📆 Scheduled: {start} -> {end} UTC")
        status = result.response_status.value if result.response_status else "?"
        lines.append(f"  🗿 Response Status: {status}")
        meeting = result.meeting_status.value if result.meeting_status else "?"
        lines.append(f"  🚩 Meeting Status: {meeting}")

    lines.append(f" -> {_OUTCOME_LABELS[result.outcome]}")
    if result.error:
        lines.append(f"      Error: {result.error}")
    return lines


class ConsoleReporter(SweepReporter):
    """Prints line-oriented status text while the cleaner runs."""

    def pass_started(self, pass_number: int) -> None:
        if pass_number > 1:
            print(f"\n🔁 Pass {pass_number}: changes found, sweeping again\n")

    def folder_started(self, inbox: Inbox) -> None:
        print(f"🔃 Processing Inbox Folder: {inbox.folder_path}")

    def item_processed(self, result: ProcessingResult) -> None:
        for line in format_result(result):
            print(line)

    def folder_finished(self, inbox: Inbox, delta: RunTally) -> None:
        print(f"✅ Finished Processing Inbox Folder: {inbox.folder_path}\n")


def print_summary(tally: RunTally) -> None:
    """
    Print the end-of-run summary.

    Args:
        tally: Totals for the run.
    """
    print("\n---------------\n")
    print("🏁 Completed!")
    print(f"  🙈 Ignored         : {tally.ignored}")
    print(f"  ⛺ Marked Tentative: {tally.marked_tentative}")
    print(f"  ❌ Deleted         : {tally.deleted}")
    print(f"  💥 Exceptions      : {tally.exceptions}")


def build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="stale-invite-cleaner",
        description=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="Configuration is read from the environment or a .env file.",
    )


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    Pass an explicit ``args`` list instead of relying on ``sys.argv`` in
    tests. Any argument prints the usage text and exits without touching a
    mailbox.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success and for usage, 1 for a fatal error).
    """
    if args is None:
        args = sys.argv[1:]

    parser = build_parser()
    if args:
        parser.print_help()
        return 0

    logger = logging.getLogger(__name__)

    try:
        settings = get_settings()
        setup_logging(settings.log_level)

        cleaner = StaleMeetingCleaner(settings=settings, reporter=ConsoleReporter())
        tally = cleaner.run()

        print_summary(tally)
        return 0

    except Exception as e:
        logger.exception("Fatal error")
        print(f"\n❌ Error: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
