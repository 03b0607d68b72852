"""Tests for gmail_mcp.aggregator."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gmail_mcp.aggregator import AssemblyState, MessageAggregator
from gmail_mcp.headers import HeaderFields
from gmail_mcp.models import Attachment
from gmail_mcp.parser import DecodedBody

DATE = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _headers(uid: str, **overrides: str) -> HeaderFields:
    fields = {
        "message_id": f"<{uid}@example.com>",
        "sender": "sender@example.com",
        "recipient": "recipient@example.com",
        "subject": f"Subject {uid}",
    }
    fields.update(overrides)
    return HeaderFields(date=DATE, **fields)


def _body(uid: str) -> DecodedBody:
    return DecodedBody(text=f"Body {uid}")


@pytest.fixture
def aggregator() -> MessageAggregator:
    agg = MessageAggregator()
    agg.dispatch(["30", "20", "10"])
    return agg


class TestDispatch:
    def test_entries_start_pending(self, aggregator: MessageAggregator):
        assert len(aggregator) == 3
        assert aggregator.pending() == ["30", "20", "10"]
        entry = aggregator.get("20")
        assert entry is not None
        assert entry.position == 1
        assert entry.state is AssemblyState.PENDING

    def test_duplicate_dispatch_keeps_first_position(self, aggregator: MessageAggregator):
        aggregator.dispatch(["10", "40"])
        assert aggregator.get("10").position == 2
        assert aggregator.get("40").position == 3


class TestAssembly:
    def test_header_then_body(self, aggregator: MessageAggregator):
        aggregator.add_headers("30", _headers("30"))
        assert aggregator.get("30").state is AssemblyState.PARTIAL

        aggregator.add_body("30", _body("30"))
        entry = aggregator.get("30")
        assert entry.state is AssemblyState.FINALIZED
        assert entry.message.subject == "Subject 30"
        assert entry.message.text == "Body 30"

    def test_body_then_header(self, aggregator: MessageAggregator):
        aggregator.add_body("20", _body("20"))
        assert aggregator.get("20").state is AssemblyState.PARTIAL
        aggregator.add_headers("20", _headers("20"))
        assert aggregator.get("20").state is AssemblyState.FINALIZED

    def test_output_follows_dispatch_order(self, aggregator: MessageAggregator):
        # Complete in reverse of dispatch order, interleaved.
        aggregator.add_body("10", _body("10"))
        aggregator.add_headers("20", _headers("20"))
        aggregator.add_headers("10", _headers("10"))
        aggregator.add_headers("30", _headers("30"))
        aggregator.add_body("20", _body("20"))
        aggregator.add_body("30", _body("30"))

        assert [m.subject for m in aggregator.messages()] == [
            "Subject 30",
            "Subject 20",
            "Subject 10",
        ]
        assert aggregator.pending() == []

    def test_attachments_carried_over(self, aggregator: MessageAggregator):
        attachment = Attachment(filename="a.bin", content=b"\x00\x01")
        aggregator.add_headers("10", _headers("10"))
        aggregator.add_body("10", DecodedBody(html="<p>x</p>", attachments=[attachment]))

        message = aggregator.messages()[0]
        assert message.text == ""
        assert message.html == "<p>x</p>"
        assert message.attachments == [attachment]

    def test_empty_recipient_is_allowed(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10", recipient=""))
        aggregator.add_body("10", _body("10"))
        assert aggregator.messages()[0].recipient == ""


class TestDiscard:
    @pytest.mark.parametrize("missing", ["message_id", "sender", "subject"])
    def test_required_field_missing(self, aggregator: MessageAggregator, missing: str):
        aggregator.add_headers("10", _headers("10", **{missing: ""}))
        aggregator.add_body("10", _body("10"))

        entry = aggregator.get("10")
        assert entry.state is AssemblyState.DISCARDED
        assert entry.message is None
        assert aggregator.messages() == []

    def test_discard_does_not_affect_siblings(self, aggregator: MessageAggregator):
        aggregator.add_headers("30", _headers("30", subject=""))
        aggregator.add_body("30", _body("30"))
        aggregator.add_headers("20", _headers("20"))
        aggregator.add_body("20", _body("20"))

        assert [m.subject for m in aggregator.messages()] == ["Subject 20"]


class TestLateAndStrayStreams:
    def test_duplicate_stream_ignored(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10"))
        aggregator.add_headers("10", _headers("10", subject="Replaced"))
        aggregator.add_body("10", _body("10"))
        assert aggregator.messages()[0].subject == "Subject 10"

    def test_stream_after_finalize_ignored(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10"))
        aggregator.add_body("10", _body("10"))
        aggregator.add_body("10", DecodedBody(text="late"))
        assert aggregator.messages()[0].text == "Body 10"

    def test_stream_after_discard_ignored(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10", message_id=""))
        aggregator.add_body("10", _body("10"))
        aggregator.add_headers("10", _headers("10"))
        assert aggregator.get("10").state is AssemblyState.DISCARDED

    def test_unknown_uid_ignored(self, aggregator: MessageAggregator):
        aggregator.add_headers("99", _headers("99"))
        aggregator.add_body("99", _body("99"))
        assert aggregator.get("99") is None
        assert len(aggregator) == 3


class TestForcedSettlement:
    def test_end_without_body_gives_empty_body(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10"))
        aggregator.end_message("10")

        entry = aggregator.get("10")
        assert entry.state is AssemblyState.FINALIZED
        assert entry.message.text == ""
        assert entry.message.html is None
        assert entry.message.attachments == []

    def test_end_without_header_discards(self, aggregator: MessageAggregator):
        aggregator.add_body("10", _body("10"))
        aggregator.end_message("10")
        assert aggregator.get("10").state is AssemblyState.DISCARDED

    def test_end_on_finalized_entry_is_noop(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10"))
        aggregator.add_body("10", _body("10"))
        aggregator.end_message("10")
        assert aggregator.messages()[0].text == "Body 10"

    def test_close_settles_everything(self, aggregator: MessageAggregator):
        aggregator.add_headers("30", _headers("30"))
        aggregator.add_body("20", _body("20"))

        aggregator.close()

        assert aggregator.pending() == []
        assert aggregator.get("30").state is AssemblyState.FINALIZED
        assert aggregator.get("20").state is AssemblyState.DISCARDED
        assert aggregator.get("10").state is AssemblyState.DISCARDED
        assert [m.subject for m in aggregator.messages()] == ["Subject 30"]

    def test_settle_with_one_stream_leaves_entry_open(self, aggregator: MessageAggregator):
        aggregator.add_headers("10", _headers("10"))
        entry = aggregator.get("10")

        aggregator._settle(entry)

        assert entry.state is AssemblyState.PARTIAL
        assert entry.message is None
        assert aggregator.pending() == ["30", "20", "10"]
