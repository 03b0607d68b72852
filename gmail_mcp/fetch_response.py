"""Split ``imaplib`` FETCH response data into per-message stream parts.

``imaplib`` returns a FETCH response as a flat list mixing
``(meta, literal)`` tuples and bare ``bytes`` continuation lines, e.g.::

    [(b'3 (UID 5 BODY[HEADER.FIELDS (FROM TO)] {52}', b'From: ...'),
     (b' BODY[] {2048}', b'Received: ...'),
     b')',
     (b'4 (BODY[HEADER.FIELDS (FROM TO)] {48}', b'From: ...'),
     (b' BODY[] {1024}', b'...'),
     b' UID 6)']

Messages arrive in server order, which is not necessarily the order they
were requested in, and the ``UID`` item may come before or after the
literals.  :func:`iter_fetch_parts` groups the pieces per message and
yields one :class:`FetchPart` per body section followed by a
:class:`MessageEnd` marker.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog

logger = structlog.get_logger()

_MESSAGE_START_RE = re.compile(rb"^\d+ \(")
_UID_RE = re.compile(rb"UID (\d+)")
_SECTION_RE = re.compile(rb"BODY\[([^\]]*)\]")


class StreamKind(str, Enum):
    """Logical byte stream delivered for a message."""

    HEADER = "header"
    BODY = "body"


@dataclass(frozen=True)
class FetchPart:
    """One completed section of one message."""

    uid: str
    kind: StreamKind
    data: bytes


@dataclass(frozen=True)
class MessageEnd:
    """All sections of the message identified by *uid* have been delivered."""

    uid: str


@dataclass
class _Group:
    metas: list[bytes] = field(default_factory=list)
    literals: list[tuple[bytes, bytes]] = field(default_factory=list)


def section_kind(meta: bytes) -> StreamKind | None:
    """Classify a literal by the ``BODY[...]`` section named in its meta."""
    match = _SECTION_RE.search(meta)
    if match is None:
        return None
    section = match.group(1).upper()
    if section.startswith(b"HEADER"):
        return StreamKind.HEADER
    return StreamKind.BODY


def parse_uid(metas: list[bytes]) -> str | None:
    for meta in metas:
        match = _UID_RE.search(meta)
        if match:
            return match.group(1).decode("ascii")
    return None


def iter_fetch_parts(data: list) -> Iterator[FetchPart | MessageEnd]:
    """Yield stream parts for every message in a FETCH response."""
    for group in _iter_groups(data):
        uid = parse_uid(group.metas)
        if uid is None:
            # Unsolicited FETCH (e.g. a FLAGS update) carries no UID
            logger.debug("fetch_group_without_uid", metas=len(group.metas))
            continue

        for meta, literal in group.literals:
            kind = section_kind(meta)
            if kind is None:
                continue
            yield FetchPart(uid=uid, kind=kind, data=literal)
        yield MessageEnd(uid=uid)


def _iter_groups(data: list) -> Iterator[_Group]:
    current: _Group | None = None

    for item in data:
        if item is None:
            continue

        if isinstance(item, tuple):
            meta, literal = item[0], item[1]
        else:
            meta, literal = item, None

        if _MESSAGE_START_RE.match(meta):
            if current is not None:
                yield current
            current = _Group()
        if current is None:
            continue

        current.metas.append(meta)
        if literal is not None:
            current.literals.append((meta, literal))

    if current is not None:
        yield current
