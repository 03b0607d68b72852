"""Shared test fixtures for the gmail_mcp test suite."""

from __future__ import annotations

import email.parser
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

from gmail_mcp.config import (
    AccountConfig,
    ImapConfig,
    LoggingConfig,
    ServerConfig,
    SmtpConfig,
)


@pytest.fixture
def account_config() -> AccountConfig:
    return AccountConfig(user="tester@example.com", app_password="app-pass")


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        host="imap.test.com",
        port=993,
        use_ssl=True,
        verify_tls=True,
        timeout_seconds=5.0,
        fetch_batch_size=2,
    )


@pytest.fixture
def smtp_config() -> SmtpConfig:
    return SmtpConfig(
        host="smtp.test.com",
        port=465,
        use_ssl=True,
        start_tls=False,
        timeout_seconds=5.0,
    )


@pytest.fixture
def server_config(
    account_config: AccountConfig,
    imap_config: ImapConfig,
    smtp_config: SmtpConfig,
) -> ServerConfig:
    return ServerConfig(
        name="gmail-mcp-test",
        tool_timeout_seconds=5.0,
        account=account_config,
        imap=imap_config,
        smtp=smtp_config,
        logging=LoggingConfig(level="DEBUG", format="console"),
    )


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _build_plain_email(
    *,
    subject: str | None = "Test Subject",
    from_addr: str | None = "sender@example.com",
    to_addr: str | None = "recipient@example.com",
    body: str = "Hello, World!",
    message_id: str | None = "<test-001@example.com>",
    date: str | None = "Sun, 01 Jun 2025 12:00:00 +0000",
) -> bytes:
    """Build a simple plain-text email as raw bytes; ``None`` omits a header."""
    msg = MIMEText(body, "plain")
    for name, value in (
        ("Subject", subject),
        ("From", from_addr),
        ("To", to_addr),
        ("Message-ID", message_id),
        ("Date", date),
    ):
        if value is not None:
            msg[name] = value
    return msg.as_bytes()


def _build_html_email(*, body_html: str = "<p>Hello</p>") -> bytes:
    msg = MIMEText(body_html, "html")
    msg["Subject"] = "HTML Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<html-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
    message_id: str = "<multi-001@example.com>",
) -> bytes:
    """Build a multipart email with text, HTML, and optional attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = message_id
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


def _header_fields_block(raw_bytes: bytes) -> bytes:
    """What the server returns for BODY[HEADER.FIELDS (FROM TO SUBJECT DATE MESSAGE-ID)]."""
    headers = email.parser.BytesHeaderParser().parsebytes(raw_bytes)
    lines = [
        f"{name}: {headers[name]}"
        for name in ("From", "To", "Subject", "Date", "Message-ID")
        if headers[name] is not None
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def html_eml_bytes() -> bytes:
    return _build_html_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
            ("data.csv", "text/csv", b"col1,col2\na,b\n"),
        ],
    )
