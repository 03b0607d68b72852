"""Async IMAP session wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import imaplib
import ssl
import threading
from collections.abc import AsyncIterator, Sequence

import structlog

from .config import AccountConfig, ImapConfig
from .errors import FetchStreamError, MailboxError, MailConnectionError, SearchError
from .fetch_response import FetchPart, MessageEnd, iter_fetch_parts
from .headers import HEADER_FIELDS

logger = structlog.get_logger()

# BODY.PEEK never sets \Seen, so fetching leaves the mailbox untouched.
FETCH_ITEMS = f"(UID BODY.PEEK[HEADER.FIELDS ({' '.join(HEADER_FIELDS)})] BODY.PEEK[])"

_SESSION_ERRORS = (imaplib.IMAP4.error, OSError)


class AsyncImapClient:
    """Async-friendly IMAP session scoped to a single fetch call.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.
    """

    def __init__(self, config: ImapConfig, account: AccountConfig) -> None:
        self._config = config
        self._account = account
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None
        self._mailbox: str | None = None
        self._aborted = False
        # Guards _conn/_aborted between the login thread and abort()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection and log in."""
        try:
            await asyncio.to_thread(self._connect_sync)
        except _SESSION_ERRORS as exc:
            logger.error("imap_connect_failed", host=self._config.host, error=str(exc))
            raise MailConnectionError(
                f"IMAP connection to {self._config.host}:{self._config.port} failed: {exc}"
            ) from exc
        logger.info("imap_connected", host=self._config.host, user=self._account.user)

    def _connect_sync(self) -> None:
        timeout = self._config.timeout_seconds
        if self._config.use_ssl:
            conn = imaplib.IMAP4_SSL(
                self._config.host,
                self._config.port,
                ssl_context=self._ssl_context(),
                timeout=timeout,
            )
        else:
            conn = imaplib.IMAP4(self._config.host, self._config.port, timeout=timeout)

        try:
            conn.login(self._account.user, self._account.app_password.get_secret_value())
        except _SESSION_ERRORS:
            _shutdown(conn)
            raise

        with self._lock:
            if not self._aborted:
                self._conn = conn
                return
        # Cancelled while logging in; nobody will disconnect this one
        _shutdown(conn)

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._config.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    async def disconnect(self) -> None:
        """Close mailbox and logout."""
        conn = self._conn
        if conn is None:
            return
        await asyncio.to_thread(self._disconnect_sync, conn, self._mailbox is not None)
        self._conn = None
        self._mailbox = None
        logger.info("imap_disconnected")

    @staticmethod
    def _disconnect_sync(conn: imaplib.IMAP4, selected: bool) -> None:
        if selected:
            try:
                conn.close()
            except _SESSION_ERRORS:
                pass
        try:
            conn.logout()
        except _SESSION_ERRORS:
            pass

    def abort(self) -> None:
        """Drop the socket immediately.

        Used when the caller is cancelled while a worker thread may still be
        blocked on the connection; the pending read fails and the thread ends.
        A login still in flight shuts its own connection down when it finishes.
        """
        with self._lock:
            self._aborted = True
            conn, self._conn = self._conn, None
            self._mailbox = None
        if conn is None:
            return
        _shutdown(conn)
        logger.warning("imap_session_aborted", host=self._config.host)

    # ------------------------------------------------------------------
    # Mailbox operations
    # ------------------------------------------------------------------

    async def select(self, mailbox: str, *, readonly: bool = True) -> int:
        """Select *mailbox* and return its message count."""
        assert self._conn is not None, "Not connected"
        try:
            status, data = await asyncio.to_thread(
                self._conn.select, _quote_mailbox(mailbox), readonly
            )
        except _SESSION_ERRORS as exc:
            raise MailboxError(f"select({mailbox!r}) failed: {exc}") from exc
        if status != "OK":
            raise MailboxError(f"select({mailbox!r}) failed: {_describe(data)}")

        self._mailbox = mailbox
        exists = int(data[0]) if data and data[0] and data[0].isdigit() else 0
        logger.debug("imap_mailbox_selected", mailbox=mailbox, readonly=readonly, exists=exists)
        return exists

    async def search(self, criteria: Sequence[str]) -> list[str]:
        """Run ``UID SEARCH`` and return matching UIDs, oldest first."""
        assert self._conn is not None, "Not connected"
        args = _encode_criteria(criteria)
        try:
            status, data = await asyncio.to_thread(self._conn.uid, "SEARCH", *args)
        except _SESSION_ERRORS as exc:
            raise SearchError(f"UID SEARCH failed: {exc}") from exc
        if status != "OK":
            raise SearchError(f"UID SEARCH failed: {_describe(data)}")

        if not data or not data[0]:
            return []
        uids = [uid.decode("ascii") for uid in data[0].split()]
        return sorted(uids, key=int)

    async def fetch(
        self,
        uids: Sequence[str],
        *,
        batch_size: int | None = None,
    ) -> AsyncIterator[FetchPart | MessageEnd]:
        """Stream the header-fields and full-body sections of *uids*.

        UIDs are requested ``batch_size`` at a time, so at most one batch of
        raw message bytes is held in memory.
        """
        assert self._conn is not None, "Not connected"
        size = batch_size or self._config.fetch_batch_size

        for start in range(0, len(uids), size):
            batch = uids[start : start + size]
            try:
                data = await asyncio.to_thread(self._fetch_sync, ",".join(batch))
            except _SESSION_ERRORS as exc:
                raise FetchStreamError(f"UID FETCH failed: {exc}") from exc

            logger.debug("imap_fetch_batch", uids=len(batch), items=len(data))
            for event in iter_fetch_parts(data):
                yield event

    def _fetch_sync(self, uid_set: str) -> list:
        assert self._conn is not None
        status, data = self._conn.uid("FETCH", uid_set, FETCH_ITEMS)
        if status != "OK":
            raise FetchStreamError(f"UID FETCH failed: {_describe(data)}")
        return data or []


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _quote_mailbox(mailbox: str) -> str:
    """Quote a mailbox name for SELECT (``[Gmail]/All Mail`` has a space)."""
    if mailbox.upper() == "INBOX":
        return "INBOX"
    if mailbox.startswith('"') and mailbox.endswith('"'):
        return mailbox
    escaped = mailbox.replace("\\", "\\\\").replace('"', r"\"")
    return f'"{escaped}"'


def _encode_criteria(criteria: Sequence[str]) -> list[str | bytes | None]:
    """Build ``UID SEARCH`` arguments; non-ASCII terms switch to UTF-8."""
    tokens = list(criteria) or ["ALL"]
    if all(token.isascii() for token in tokens):
        return [None, *tokens]
    return ["CHARSET", "UTF-8", *(token.encode("utf-8") for token in tokens)]


def _describe(data: list | None) -> str:
    if not data:
        return "no response"
    first = data[0]
    if isinstance(first, bytes):
        return first.decode("utf-8", errors="replace")
    return str(first)


def _shutdown(conn: imaplib.IMAP4) -> None:
    try:
        conn.shutdown()
    except OSError:
        pass
