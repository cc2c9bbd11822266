"""Stale Invite Cleaner package.

Objective:
    Keep Outlook inboxes free of stale meeting invitations:
    - Fetch meeting requests and cancellations from each personal Inbox
      using Microsoft Graph.
    - Decide per item, from the state of its calendar appointment, whether to
      ignore it, mark the meeting tentative, delete a cancelled meeting, or
      just delete the leftover notification.
    - Repeat full passes until a pass deletes nothing.

Key modules:
    - :mod:`src.stale_invite_cleaner.auth`:
        Microsoft Graph authentication (device code flow, token cache) and
        the one-time session startup wait.
    - :mod:`src.stale_invite_cleaner.graph_client`:
        Graph API wrapper for inboxes, meeting messages and events.
    - :mod:`src.stale_invite_cleaner.inbox_provider`:
        Discovery of personal Inboxes.
    - :mod:`src.stale_invite_cleaner.classifier`:
        Meeting message classification and appointment lookup.
    - :mod:`src.stale_invite_cleaner.policy`:
        The resolution policy (pure decision function).
    - :mod:`src.stale_invite_cleaner.orchestrator`:
        Folder sweep and convergence loop.
    - :mod:`src.stale_invite_cleaner.cli`:
        User-facing entrypoint.
"""

__version__ = "0.1.0"
