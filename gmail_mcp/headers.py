"""Header-field decoding for the ``HEADER.FIELDS`` fetch stream.

Uses ``email.parser.BytesHeaderParser`` which parses *only* the header
block.  Decoding is lenient: a value that fails to parse becomes an
empty string (or "now" for ``Date``) instead of failing the message, so
a single malformed header never costs the caller the message body.
"""

from __future__ import annotations

import email.errors
import email.message
import email.parser
import email.policy
import email.utils
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger()

# The header fields requested from the server for every message.
HEADER_FIELDS = ("FROM", "TO", "SUBJECT", "DATE", "MESSAGE-ID")

_PARSE_ERRORS = (email.errors.HeaderParseError, ValueError, TypeError, IndexError, AttributeError)


@dataclass
class HeaderFields:
    """Normalized header values for one message."""

    message_id: str
    sender: str
    recipient: str
    subject: str
    date: datetime


def decode_headers(raw_bytes: bytes, *, now: datetime | None = None) -> HeaderFields:
    """Decode the header block of one message.

    *now* is used as the timestamp when ``Date`` is missing or cannot be
    parsed; it defaults to the current UTC time.
    """
    headers = email.parser.BytesHeaderParser(policy=email.policy.default).parsebytes(raw_bytes)

    return HeaderFields(
        message_id=_field(headers, "Message-ID"),
        sender=_field(headers, "From"),
        recipient=_field(headers, "To"),
        subject=_field(headers, "Subject"),
        date=_parse_date(_field(headers, "Date"), now),
    )


def _field(headers: email.message.Message, name: str) -> str:
    try:
        value = headers.get(name)
        return str(value).strip() if value is not None else ""
    except _PARSE_ERRORS as exc:
        logger.debug("header_value_unparsable", header=name, error=str(exc))
        return ""


def _parse_date(value: str, now: datetime | None) -> datetime:
    fallback = now or datetime.now(UTC)
    if not value:
        return fallback
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except _PARSE_ERRORS:
        logger.debug("header_date_unparsable", value=value)
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
