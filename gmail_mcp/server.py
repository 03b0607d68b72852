"""Tool surface: the five mail tools registered on a FastMCP server."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from mcp.server.fastmcp import FastMCP

from . import query
from .config import ServerConfig
from .fetcher import MailFetcher
from .models import Message
from .query import DEFAULT_LIMIT, DEFAULT_MAILBOX, FetchQuery
from .sender import MailSender

logger = structlog.get_logger()

INSTRUCTIONS = """\
Read and send mail for the configured account.
Fetch tools return the newest matching messages first, as JSON objects with
message_id, sender, recipient, subject, date, text, html and attachments
(attachment content is base64). Fetching never marks messages as read.
"""


class MailTools:
    """Plain async implementations behind each registered tool.

    Each call runs under the configured wall-clock limit; on timeout the
    IMAP session is torn down and no partial result is returned.
    """

    def __init__(self, config: ServerConfig, fetcher: MailFetcher, sender: MailSender) -> None:
        self._timeout = config.tool_timeout_seconds
        self._fetcher = fetcher
        self._sender = sender

    async def fetch_emails(
        self,
        limit: int = DEFAULT_LIMIT,
        mailbox: str = DEFAULT_MAILBOX,
        criteria: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the newest emails in a mailbox, optionally filtered by raw IMAP
        SEARCH criteria such as ["UNSEEN", "SINCE", "01-Jan-2025"]. One list item
        per token; values with spaces, e.g. ["SUBJECT", "hello world"], are quoted."""
        return await self._fetch(query.from_criteria(criteria, limit=limit, mailbox=mailbox))

    async def fetch_emails_by_subject(
        self, subject: str, limit: int = DEFAULT_LIMIT
    ) -> list[dict[str, Any]]:
        """Fetch the newest inbox emails whose subject contains the given text."""
        return await self._fetch(query.by_subject(subject, limit=limit))

    async def fetch_emails_from_sender(
        self, sender: str, limit: int = DEFAULT_LIMIT
    ) -> list[dict[str, Any]]:
        """Fetch the newest inbox emails sent from the given address or name."""
        return await self._fetch(query.by_sender(sender, limit=limit))

    async def fetch_unread_emails(self, limit: int = DEFAULT_LIMIT) -> list[dict[str, Any]]:
        """Fetch the newest unread inbox emails without marking them as read."""
        return await self._fetch(query.unread(limit=limit))

    async def send_email(self, to: str, subject: str, body: str) -> dict[str, bool]:
        """Send a plain-text email. Returns {"success": false} if delivery failed."""
        try:
            async with asyncio.timeout(self._timeout):
                success = await self._sender.send(to, subject, body)
        except TimeoutError:
            logger.error("email_send_timed_out", to=to, timeout=self._timeout)
            success = False
        return {"success": success}

    async def _fetch(self, fetch_query: FetchQuery) -> list[dict[str, Any]]:
        try:
            async with asyncio.timeout(self._timeout):
                messages = await self._fetcher.fetch(fetch_query)
        except TimeoutError:
            logger.error("fetch_timed_out", mailbox=fetch_query.mailbox, timeout=self._timeout)
            raise
        return serialize(messages)


def serialize(messages: list[Message]) -> list[dict[str, Any]]:
    return [message.model_dump(mode="json") for message in messages]


def create_server(
    config: ServerConfig,
    *,
    fetcher: MailFetcher | None = None,
    sender: MailSender | None = None,
) -> FastMCP:
    """Build a FastMCP server exposing the mail tools."""
    tools = MailTools(
        config,
        fetcher or MailFetcher(config),
        sender or MailSender(config),
    )
    server = FastMCP(config.name, instructions=INSTRUCTIONS, port=config.port)

    server.add_tool(tools.fetch_emails, name="fetch_emails")
    server.add_tool(tools.fetch_emails_by_subject, name="fetch_emails_by_subject")
    server.add_tool(tools.fetch_emails_from_sender, name="fetch_emails_from_sender")
    server.add_tool(tools.fetch_unread_emails, name="fetch_unread_emails")
    server.add_tool(tools.send_email, name="send_email")

    logger.debug("tools_registered", server=config.name, transport=config.transport)
    return server
