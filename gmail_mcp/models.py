"""Caller-visible mail records returned by the fetch tools."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

DEFAULT_FILENAME = "unnamed"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class Attachment(BaseModel):
    """A single attachment extracted from a message body.

    ``content`` is serialized as base64 when dumped to JSON.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    filename: str = Field(default=DEFAULT_FILENAME, description="Attachment file name")
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE, description="MIME content type")
    content: bytes = Field(min_length=1, description="Decoded attachment payload")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size(self) -> int:
        return len(self.content)

    def __repr__(self) -> str:
        return (
            f"Attachment(filename={self.filename!r}, "
            f"content_type={self.content_type!r}, size={self.size})"
        )


class Message(BaseModel):
    """A fully assembled message.

    Only built once the identifier, sender and subject are all known to be
    non-empty; the aggregator drops anything else.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    message_id: str = Field(min_length=1, description="RFC 5322 Message-ID header")
    sender: str = Field(min_length=1, description="Decoded From header")
    recipient: str = Field(default="", description="Decoded To header")
    subject: str = Field(min_length=1, description="Decoded Subject header")
    date: datetime = Field(description="Date header, or the receipt time if unparsable")
    text: str = Field(default="", description="Plain-text body")
    html: str | None = Field(default=None, description="HTML body, if the message has one")
    attachments: list[Attachment] = Field(default_factory=list)
