"""MailFetcher: open a session, search, fetch and assemble messages."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from .aggregator import MessageAggregator
from .config import ServerConfig
from .errors import SessionError
from .fetch_response import FetchPart, MessageEnd, StreamKind
from .headers import decode_headers
from .imap_client import AsyncImapClient
from .models import Message
from .parser import MimeParser
from .query import FetchQuery

logger = structlog.get_logger()

SessionFactory = Callable[[], AsyncImapClient]


class MailFetcher:
    """Fetch the newest messages matching a :class:`FetchQuery`.

    Every :meth:`fetch` call opens its own IMAP session and its own
    :class:`MessageAggregator`, and closes the session before returning,
    whether the call succeeds, fails or is cancelled.  Results are returned
    as one batch; nothing is delivered incrementally.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        session_factory: SessionFactory | None = None,
        parser: MimeParser | None = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory or (
            lambda: AsyncImapClient(config.imap, config.account)
        )
        self._parser = parser or MimeParser()

    async def fetch(self, query: FetchQuery) -> list[Message]:
        log = logger.bind(
            mailbox=query.mailbox,
            criteria=" ".join(query.criteria),
            limit=query.limit,
        )
        session = self._session_factory()

        try:
            await session.connect()
            await session.select(query.mailbox, readonly=True)

            uids = await session.search(query.criteria)
            if not uids:
                log.info("fetch_no_matches")
                return []

            # Server order is oldest-first; take the newest `limit`.
            selected = list(reversed(uids))[: query.limit]

            aggregator = MessageAggregator()
            aggregator.dispatch(selected)
            received_at = datetime.now(UTC)

            async for event in session.fetch(selected):
                self._apply(aggregator, event, received_at)
            aggregator.close()

            messages = aggregator.messages()
            log.info(
                "fetch_complete",
                matched=len(uids),
                requested=len(selected),
                returned=len(messages),
            )
            return messages
        except asyncio.CancelledError:
            log.warning("fetch_cancelled")
            session.abort()
            raise
        except SessionError as exc:
            log.error("fetch_failed", error_type=type(exc).__name__, error=str(exc))
            raise
        finally:
            await session.disconnect()

    def _apply(
        self,
        aggregator: MessageAggregator,
        event: FetchPart | MessageEnd,
        received_at: datetime,
    ) -> None:
        if isinstance(event, MessageEnd):
            aggregator.end_message(event.uid)
            return
        if aggregator.get(event.uid) is None:
            logger.debug("fetch_part_for_unrequested_uid", uid=event.uid)
            return

        if event.kind is StreamKind.HEADER:
            aggregator.add_headers(event.uid, decode_headers(event.data, now=received_at))
        else:
            aggregator.add_body(event.uid, self._parser.decode(event.data))
