"""Per-fetch assembly of messages from independently delivered streams.

Each dispatched message gets an :class:`InFlightMessage` keyed by its UID.
The header-fields stream and the full-body stream for that UID may arrive
in either order, interleaved with other messages' streams.  Once both have
arrived the entry is validated and either finalized into a
:class:`~gmail_mcp.models.Message` or discarded.

Output order is the order messages were dispatched in, never the order
their streams happened to complete.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from .headers import HeaderFields
from .models import Message
from .parser import DecodedBody

logger = structlog.get_logger()


class AssemblyState(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"
    FINALIZED = "finalized"
    DISCARDED = "discarded"


TERMINAL_STATES = frozenset({AssemblyState.FINALIZED, AssemblyState.DISCARDED})


@dataclass
class InFlightMessage:
    """Partial assembly record for one message."""

    uid: str
    position: int
    headers: HeaderFields | None = None
    body: DecodedBody | None = None
    state: AssemblyState = AssemblyState.PENDING
    message: Message | None = field(default=None, repr=False)

    @property
    def header_received(self) -> bool:
        return self.headers is not None

    @property
    def body_received(self) -> bool:
        return self.body is not None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class MessageAggregator:
    """Keyed table of in-flight messages for a single fetch call.

    Not shared between calls: the fetcher creates one per ``fetch()``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, InFlightMessage] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, uid: str) -> InFlightMessage | None:
        return self._entries.get(uid)

    def dispatch(self, uids: Iterable[str]) -> None:
        """Register messages in output order before any stream arrives."""
        for uid in uids:
            if uid in self._entries:
                continue
            self._entries[uid] = InFlightMessage(uid=uid, position=len(self._entries))

    # ------------------------------------------------------------------
    # Stream completion
    # ------------------------------------------------------------------

    def add_headers(self, uid: str, headers: HeaderFields) -> None:
        entry = self._open_entry(uid, "header")
        if entry is None:
            return
        if entry.header_received:
            logger.debug("duplicate_stream_ignored", uid=uid, stream="header")
            return
        entry.headers = headers
        self._advance(entry)

    def add_body(self, uid: str, body: DecodedBody) -> None:
        entry = self._open_entry(uid, "body")
        if entry is None:
            return
        if entry.body_received:
            logger.debug("duplicate_stream_ignored", uid=uid, stream="body")
            return
        entry.body = body
        self._advance(entry)

    def end_message(self, uid: str) -> None:
        """The server has delivered everything it will for *uid*."""
        entry = self._entries.get(uid)
        if entry is None or entry.is_terminal:
            return
        self._force_terminal(entry)

    def close(self) -> None:
        """The fetch stream has ended: settle every remaining entry."""
        for entry in self._entries.values():
            if not entry.is_terminal:
                self._force_terminal(entry)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def messages(self) -> list[Message]:
        """Finalized messages in dispatch order."""
        ordered = sorted(self._entries.values(), key=lambda e: e.position)
        return [e.message for e in ordered if e.message is not None]

    def pending(self) -> list[str]:
        return [uid for uid, e in self._entries.items() if not e.is_terminal]

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _open_entry(self, uid: str, stream: str) -> InFlightMessage | None:
        entry = self._entries.get(uid)
        if entry is None:
            logger.debug("stream_for_unknown_uid", uid=uid, stream=stream)
            return None
        if entry.is_terminal:
            logger.debug("stream_after_terminal_state", uid=uid, stream=stream)
            return None
        return entry

    def _advance(self, entry: InFlightMessage) -> None:
        if entry.header_received and entry.body_received:
            entry.state = AssemblyState.COMPLETE
            self._settle(entry)
        else:
            entry.state = AssemblyState.PARTIAL

    def _force_terminal(self, entry: InFlightMessage) -> None:
        if not entry.header_received:
            self._discard(entry, reason="header_stream_missing")
            return
        if not entry.body_received:
            entry.body = DecodedBody()
        entry.state = AssemblyState.COMPLETE
        self._settle(entry)

    def _settle(self, entry: InFlightMessage) -> None:
        headers = entry.headers
        body = entry.body
        if headers is None or body is None:
            logger.debug("settle_without_both_streams", uid=entry.uid)
            return

        missing = [
            name
            for name, value in (
                ("message_id", headers.message_id),
                ("sender", headers.sender),
                ("subject", headers.subject),
            )
            if not value
        ]
        if missing:
            self._discard(entry, reason="required_fields_missing", missing=missing)
            return

        entry.message = Message(
            message_id=headers.message_id,
            sender=headers.sender,
            recipient=headers.recipient,
            subject=headers.subject,
            date=headers.date,
            text=body.text,
            html=body.html,
            attachments=list(body.attachments),
        )
        entry.state = AssemblyState.FINALIZED

    def _discard(self, entry: InFlightMessage, *, reason: str, **details: object) -> None:
        entry.state = AssemblyState.DISCARDED
        entry.message = None
        logger.debug("message_discarded", uid=entry.uid, reason=reason, **details)
