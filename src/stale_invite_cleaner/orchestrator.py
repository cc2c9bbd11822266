"""Workflow orchestrator.

Objective:
    Coordinate the end-to-end cleanup:
    1) Acquire the Inboxes to sweep
    2) For every meeting request/cancellation in each Inbox:
        - classify it and resolve its appointment
        - apply the resolution policy
        - perform the requested calendar side effect
        - delete the notification when the policy says so
    3) Repeat full passes until a pass deletes nothing new
    4) Return the run tally for the CLI summary

Responsibilities:
    - Compose the core components (auth, Graph client, inbox provider,
      classifier).
    - Keep every per-item and per-folder failure local: it is counted as an
      exception and the sweep moves on.
    - Thread an immutable :class:`RunTally` through sweeps instead of global
      counters.

High-level call tree:
    - :class:`StaleMeetingCleaner`
        - :meth:`StaleMeetingCleaner.run`
            - :meth:`InboxProvider.list_inboxes` (every pass)
            - :meth:`StaleMeetingCleaner.sweep`
                - :meth:`GraphClient.list_meeting_messages`
                - :meth:`StaleMeetingCleaner.process_message`
                    - :meth:`MeetingClassifier.classify`
                    - :meth:`MeetingClassifier.resolve_appointment`
                    - :func:`src.stale_invite_cleaner.policy.resolve`
                    - :meth:`StaleMeetingCleaner._apply_side_effect`
                    - :meth:`GraphClient.delete_message`
    - :func:`run_cleaner` convenience wrapper

Operational notes:
    - Calendar state is shared with the user, who may change it mid-run.
      Actions that find their target gone count as done.
    - The orchestrator does not persist state between runs.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .auth import GraphAuthenticator
from .classifier import LookupStatus, MeetingClassifier
from .config import Settings, get_settings
from .graph_client import ActionResult, ActionStatus, GraphClient
from .inbox_provider import InboxProvider
from .models import (
    Inbox,
    MeetingMessage,
    ProcessingOutcome,
    ProcessingResult,
    RunTally,
)
from .policy import Decision, SideEffect, resolve

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SweepReporter:
    """Receives progress events from the cleaner.

    The base implementation does nothing; the CLI prints status lines.
    """

    def pass_started(self, pass_number: int) -> None:
        pass

    def folder_started(self, inbox: Inbox) -> None:
        pass

    def item_processed(self, result: ProcessingResult) -> None:
        pass

    def folder_finished(self, inbox: Inbox, delta: RunTally) -> None:
        pass


class StaleMeetingCleaner:
    """
    Resolves stale meeting invitations across all personal Inboxes.

    This class is "glue" around the pure policy in
    :mod:`src.stale_invite_cleaner.policy`: it fetches snapshots, asks the
    policy what to do and carries out the answer.

    Attributes:
        settings: Application settings.
        auth: Graph API authenticator.
        client: Graph client for mailbox/calendar operations.
        inbox_provider: Source of Inboxes for each pass.
        classifier: Meeting classifier.
        reporter: Progress sink.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        reporter: Optional[SweepReporter] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the cleaner with all components.

        Args:
            settings: Application settings (loads from env if None).
            reporter: Progress sink (silent if None).
            clock: Returns the current aware UTC time.
        """
        self.settings = settings or get_settings()
        self.reporter = reporter or SweepReporter()
        self.clock = clock

        self.auth = GraphAuthenticator(self.settings)
        self.client = GraphClient(self.settings, self.auth)
        self.inbox_provider = InboxProvider(self.settings, self.auth, self.client)
        self.classifier = MeetingClassifier(self.client)

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self.settings.stale_after_hours)

    def _apply_side_effect(self, mailbox: str, decision: Decision, event_id: str) -> ActionResult:
        if decision.side_effect is SideEffect.DELETE_APPOINTMENT:
            return self.client.delete_event(mailbox, event_id)
        if decision.side_effect is SideEffect.RESPOND_TENTATIVE:
            return self.client.tentatively_accept_event(mailbox, event_id)
        return ActionResult(ActionStatus.SUCCESS)

    def process_message(self, message: MeetingMessage, inbox: Inbox) -> Optional[ProcessingResult]:
        """
        Resolve a single meeting message.

        Args:
            message: Raw message from the Inbox.
            inbox: Inbox the message lives in.

        Returns:
            Optional[ProcessingResult]: Result, or None if the message is not a
            recognized meeting notification.
        """
        notification = self.classifier.classify(message, inbox.mailbox)
        if notification is None:
            logger.debug(f"Skipping non-meeting message {message.id}")
            return None

        result = ProcessingResult(
            message_id=notification.id,
            subject=notification.subject,
            sender=notification.sender_email,
            outcome=ProcessingOutcome.EXCEPTION,
        )

        lookup = self.classifier.resolve_appointment(notification)
        if lookup.status is LookupStatus.FAULT:
            result.error = lookup.error
            return result

        appointment = lookup.appointment
        if appointment is not None:
            result.appointment_found = True
            result.subject = appointment.subject or notification.subject
            result.organizer = appointment.organizer_email
            result.start = appointment.start_utc
            result.end = appointment.end_utc
            result.response_status = appointment.response_status
            result.meeting_status = appointment.meeting_status

        decision = resolve(notification, appointment, self.clock(), self.stale_after)
        outcome = decision.outcome

        if decision.side_effect is not SideEffect.NONE:
            action = self._apply_side_effect(notification.mailbox, decision, appointment.id)
            if not action.ok:
                result.error = f"{decision.side_effect.value} failed: {action.error}"
                return result
            if (
                decision.side_effect is SideEffect.RESPOND_TENTATIVE
                and action.status is ActionStatus.ALREADY_DONE
            ):
                # Event vanished between lookup and response
                outcome = ProcessingOutcome.DELETED_AS_ALREADY_RESOLVED

        result.outcome = outcome

        if decision.remove_notification:
            removal = self.client.delete_message(notification.mailbox, notification.id)
            if not removal.ok:
                result.error = f"delete message failed: {removal.error}"
                return result
            result.removed = True

        return result

    @staticmethod
    def _tally(result: ProcessingResult) -> RunTally:
        delta = RunTally.for_outcome(result.outcome, result.removed)
        if result.error and result.outcome is not ProcessingOutcome.EXCEPTION:
            # Side effect done but the notification could not be removed
            delta = delta + RunTally(exceptions=1)
        return delta

    def sweep(self, inbox: Inbox) -> RunTally:
        """
        Apply the resolution policy to every meeting notification in an Inbox.

        Errors are caught per item so a single bad message never stops the
        sweep; a failure listing the folder ends this folder only.

        Args:
            inbox: Inbox to sweep.

        Returns:
            RunTally: Counts for this folder only.
        """
        delta = RunTally()
        self.reporter.folder_started(inbox)
        logger.info(f"Sweeping {inbox.folder_path}")

        try:
            for message in self.client.list_meeting_messages(inbox):
                try:
                    result = self.process_message(message, inbox)
                except Exception as e:
                    logger.exception(f"Error processing message {message.id}")
                    result = ProcessingResult(
                        message_id=message.id,
                        subject=message.subject,
                        sender=message.sender_email,
                        outcome=ProcessingOutcome.EXCEPTION,
                        error=str(e),
                    )

                if result is None:
                    continue

                delta = delta + self._tally(result)
                self.reporter.item_processed(result)
        except Exception:
            logger.exception(f"Error listing messages in {inbox.folder_path}")
            delta = delta + RunTally(exceptions=1)

        self.reporter.folder_finished(inbox, delta)
        logger.info(
            f"Finished {inbox.folder_path}: ignored={delta.ignored} "
            f"tentative={delta.marked_tentative} deleted={delta.deleted} "
            f"exceptions={delta.exceptions}"
        )
        return delta

    def run(self) -> RunTally:
        """Sweep all Inboxes repeatedly until a pass deletes nothing new.

        Each pass re-acquires the Inboxes. Resolving one item can change what
        other notifications resolve to, and items can arrive mid-run, so a
        single pass is not guaranteed to be complete.

        Returns:
            RunTally: Totals accumulated over every pass.
        """
        tally = RunTally()
        pass_number = 0

        while True:
            pass_number += 1
            deleted_before = tally.deleted
            self.reporter.pass_started(pass_number)

            inboxes = self.inbox_provider.list_inboxes(auto_launch=self.settings.auto_launch)
            logger.info(f"Pass {pass_number}: {len(inboxes)} inbox(es)")

            for inbox in inboxes:
                tally = tally + self.sweep(inbox)

            if tally.deleted == deleted_before:
                break

        logger.info(f"Reached a fixed point after {pass_number} pass(es)")
        return tally


def run_cleaner(reporter: Optional[SweepReporter] = None) -> RunTally:
    """Convenience wrapper to run the cleaner with settings from the environment.

    Args:
        reporter: Progress sink.

    Returns:
        RunTally: Totals for the run.
    """
    cleaner = StaleMeetingCleaner(reporter=reporter)
    return cleaner.run()
