"""gmail-mcp: fetch and send mail over IMAP/SMTP as MCP tools."""

from .aggregator import InFlightMessage, MessageAggregator
from .config import AccountConfig, ImapConfig, LoggingConfig, ServerConfig, SmtpConfig
from .errors import (
    FetchStreamError,
    MailboxError,
    MailConnectionError,
    MailError,
    SearchError,
    SessionError,
    ValidationError,
)
from .fetcher import MailFetcher
from .headers import HeaderFields, decode_headers
from .imap_client import AsyncImapClient
from .models import Attachment, Message
from .parser import DecodedBody, MimeParser
from .query import FetchQuery
from .sender import MailSender
from .server import create_server

__all__ = [
    "AccountConfig",
    "AsyncImapClient",
    "Attachment",
    "DecodedBody",
    "FetchQuery",
    "FetchStreamError",
    "HeaderFields",
    "ImapConfig",
    "InFlightMessage",
    "LoggingConfig",
    "MailConnectionError",
    "MailError",
    "MailFetcher",
    "MailSender",
    "MailboxError",
    "MessageAggregator",
    "Message",
    "MimeParser",
    "SearchError",
    "ServerConfig",
    "SessionError",
    "SmtpConfig",
    "ValidationError",
    "create_server",
    "decode_headers",
]
