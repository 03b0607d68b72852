"""Turn caller intents into immutable :class:`FetchQuery` values.

Criteria are kept as native IMAP ``SEARCH`` tokens, e.g.
``("SUBJECT", '"invoice"')`` or ``("UNSEEN",)``.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .errors import ValidationError

DEFAULT_LIMIT = 10
DEFAULT_MAILBOX = "INBOX"


class FetchQuery(BaseModel):
    """What to fetch: newest ``limit`` messages of ``mailbox`` matching ``criteria``."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=DEFAULT_LIMIT, gt=0, description="Maximum messages returned")
    mailbox: str = Field(default=DEFAULT_MAILBOX, min_length=1, description="Mailbox to search")
    criteria: tuple[str, ...] = Field(default=("ALL",), description="IMAP SEARCH tokens")


def quote(value: str) -> str:
    """Quote a string literal for IMAP SEARCH (backslash-escapes ``\\`` and ``"``)."""
    escaped = value.replace("\\", "\\\\").replace('"', r"\"")
    return f'"{escaped}"'


def match_all(limit: int = DEFAULT_LIMIT, mailbox: str = DEFAULT_MAILBOX) -> FetchQuery:
    return _build(limit=limit, mailbox=mailbox, criteria=("ALL",))


def by_subject(subject: str | None, limit: int = DEFAULT_LIMIT) -> FetchQuery:
    term = _require(subject, "subject")
    return _build(limit=limit, mailbox=DEFAULT_MAILBOX, criteria=("SUBJECT", quote(term)))


def by_sender(sender: str | None, limit: int = DEFAULT_LIMIT) -> FetchQuery:
    term = _require(sender, "sender")
    return _build(limit=limit, mailbox=DEFAULT_MAILBOX, criteria=("FROM", quote(term)))


def unread(limit: int = DEFAULT_LIMIT) -> FetchQuery:
    return _build(limit=limit, mailbox=DEFAULT_MAILBOX, criteria=("UNSEEN",))


def from_criteria(
    criteria: str | Sequence[str] | None,
    limit: int = DEFAULT_LIMIT,
    mailbox: str = DEFAULT_MAILBOX,
) -> FetchQuery:
    """Pass raw SEARCH criteria through; the server validates them.

    A string is split shell-style so quoted phrases stay one token,
    e.g. ``'FROM "Jane Doe" UNSEEN'``.  In a list each item is one token;
    items containing whitespace or ``"`` are quoted unless already quoted,
    so ``["SUBJECT", "hello world"]`` works.  Empty criteria match everything.
    """
    if criteria is None:
        tokens: tuple[str, ...] = ()
    elif isinstance(criteria, str):
        tokens = tuple(_split(criteria))
    else:
        tokens = tuple(_as_token(str(token)) for token in criteria)
    return _build(limit=limit, mailbox=mailbox, criteria=tokens or ("ALL",))


def _as_token(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value
    if not value or any(ch.isspace() or ch == '"' for ch in value):
        return quote(value)
    return value


def _split(criteria: str) -> list[str]:
    lexer = shlex.shlex(criteria, posix=False)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return list(lexer)
    except ValueError as exc:
        raise ValidationError(f"Unbalanced quotes in criteria: {criteria!r}") from exc


def _require(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value.strip()


def _build(**fields: object) -> FetchQuery:
    try:
        return FetchQuery(**fields)
    except pydantic.ValidationError as exc:
        raise ValidationError(str(exc)) from exc
