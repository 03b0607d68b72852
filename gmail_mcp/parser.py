"""MIME decoding for the full-body fetch stream.

Walks the whole message to extract the plain-text body, the HTML body
and attachments.  Malformed input never raises: parts that fail to decode
are dropped and whatever did decode is kept.
"""

from __future__ import annotations

import email
import email.errors
import email.message
import email.policy
from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from .models import DEFAULT_CONTENT_TYPE, DEFAULT_FILENAME, Attachment

logger = structlog.get_logger()

# LookupError covers unknown charsets; ValueError covers bad transfer encodings.
_PART_ERRORS = (LookupError, ValueError, TypeError, AttributeError, email.errors.MessageError)


@dataclass
class DecodedBody:
    """Body parts of one message."""

    text: str = ""
    html: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


class MimeParser:
    """Stateless parser: raw RFC 822 bytes → DecodedBody.

    Each leaf part is decoded on its own; a part that cannot be decoded
    (unknown charset, broken transfer encoding, bad header) is logged and
    skipped while the rest of the message is kept.
    """

    def decode(self, raw_bytes: bytes) -> DecodedBody:
        try:
            msg = email.message_from_bytes(raw_bytes, policy=email.policy.default)
        except Exception as exc:
            logger.warning("mime_decode_failed", size=len(raw_bytes), error=str(exc))
            return DecodedBody()

        text, html = self._extract_bodies(msg)
        attachments = self._extract_attachments(msg)
        return DecodedBody(text=text or "", html=html, attachments=attachments)

    def _extract_bodies(self, msg: email.message.Message) -> tuple[str | None, str | None]:
        """Walk MIME parts and return (plain_text, html_text)."""
        body_text: str | None = None
        body_html: str | None = None

        for part in _leaf_parts(msg):
            try:
                if _is_attachment(part):
                    continue
                content_type = part.get_content_type()
                if content_type == "text/plain" and body_text is None:
                    payload = part.get_content()
                    if isinstance(payload, str):
                        body_text = payload
                elif content_type == "text/html" and body_html is None:
                    payload = part.get_content()
                    if isinstance(payload, str):
                        body_html = payload
            except _PART_ERRORS as exc:
                logger.warning("mime_part_skipped", stage="body", error=str(exc))

        return body_text, body_html

    def _extract_attachments(self, msg: email.message.Message) -> list[Attachment]:
        """Walk MIME parts and collect attachments that carry content."""
        attachments: list[Attachment] = []

        for part in _leaf_parts(msg):
            try:
                attachment = _to_attachment(part)
            except _PART_ERRORS as exc:
                logger.warning("mime_part_skipped", stage="attachment", error=str(exc))
                continue
            if attachment is not None:
                attachments.append(attachment)

        return attachments


def _leaf_parts(msg: email.message.Message) -> Iterator[email.message.Message]:
    # Multipart containers have no content of their own
    for part in msg.walk():
        if part.get_content_maintype() != "multipart":
            yield part


def _to_attachment(part: email.message.Message) -> Attachment | None:
    if not _is_attachment(part):
        return None

    content = _payload_bytes(part)
    if not content:
        logger.debug("attachment_without_content", filename=part.get_filename())
        return None

    content_type = part.get_content_type() if part.get("Content-Type") else None
    return Attachment(
        filename=part.get_filename() or DEFAULT_FILENAME,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        content=content,
    )


def _is_attachment(part: email.message.Message) -> bool:
    """Content-Disposition: attachment, or a named non-text leaf part."""
    disposition = str(part.get("Content-Disposition", "")).lower()
    if "attachment" in disposition:
        return True
    return bool(part.get_filename()) and part.get_content_maintype() != "text"


def _payload_bytes(part: email.message.Message) -> bytes | None:
    try:
        payload = part.get_content()
    except LookupError:
        # Unknown charset on a text attachment: keep the transfer-decoded bytes
        return part.get_payload(decode=True)
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, email.message.Message):
        return payload.as_bytes()
    return None
