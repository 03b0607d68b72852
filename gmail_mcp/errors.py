"""Exception hierarchy for mailbox sessions and tool arguments."""

from __future__ import annotations


class MailError(Exception):
    """Base class for every error raised by gmail_mcp."""


class SessionError(MailError):
    """The mailbox session failed; the whole fetch call is aborted."""


class MailConnectionError(SessionError):
    """Connecting or authenticating to the IMAP server failed."""


class MailboxError(SessionError):
    """The target mailbox could not be selected."""


class SearchError(SessionError):
    """The server rejected or failed the SEARCH command."""


class FetchStreamError(SessionError):
    """The FETCH response stream failed part-way through."""


class ValidationError(MailError, ValueError):
    """A required caller argument was missing or blank.

    Raised before any network activity takes place.
    """
