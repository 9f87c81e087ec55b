"""Unit tests for Slack formatting and delivery."""

from datetime import UTC, datetime
from typing import Any

from slack_sdk.errors import SlackApiError

from sheets_bridge.slack import (
    MAX_BLOCKS,
    SlackMetadata,
    SlackNotifier,
    SlackTableData,
    format_blocks,
)
from tests.fakes import FakeSlackClient

PINNED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_table(headers: list[str], rows: list[list[str]]) -> SlackTableData:
    return SlackTableData(
        headers=headers,
        rows=rows,
        metadata=SlackMetadata(
            spreadsheet_id="abc",
            sheet_name="Sheet1",
            total_rows=1000,
            actual_data_rows=len(rows),
        ),
    )


def section_texts(blocks: list[dict[str, Any]]) -> list[str]:
    return [b["text"]["text"] for b in blocks if b["type"] == "section" and "text" in b]


class TestFormatBlocks:
    """Tests for format_blocks function."""

    def test_rows_truncated_with_more_rows_marker(self) -> None:
        """Rows past max_rows are summarized in a marker."""
        table = make_table(["A", "B"], [["1", "2"], ["3", "4"], ["5", "6"]])
        blocks = format_blocks(table, include_metadata=False, max_rows=2, now=PINNED_NOW)

        assert section_texts(blocks) == [
            "*A* | *B*",
            "--- | ---",
            "1 | 2",
            "3 | 4",
            "_+1 more rows_",
        ]

    def test_no_marker_when_all_rows_fit(self) -> None:
        """No marker when every row is shown."""
        table = make_table(["A"], [["1"], ["2"]])
        blocks = format_blocks(table, include_metadata=False, max_rows=2, now=PINNED_NOW)

        assert not any("more rows" in text for text in section_texts(blocks))

    def test_block_order_with_metadata(self) -> None:
        """Header, metadata, divider, table and context appear in order."""
        table = make_table(["A"], [["1"]])
        blocks = format_blocks(table, now=PINNED_NOW)

        assert [b["type"] for b in blocks] == [
            "header",
            "section",
            "divider",
            "section",
            "section",
            "section",
            "context",
        ]
        assert blocks[0]["text"]["text"] == "📊 Google Sheets Data: Sheet1"
        fields = [field["text"] for field in blocks[1]["fields"]]
        assert fields == [
            "*Spreadsheet ID:*\nabc",
            "*Sheet Name:*\nSheet1",
            "*Total Rows:*\n1000",
            "*Data Rows:*\n1",
        ]

    def test_metadata_omitted(self) -> None:
        """include_metadata=False drops the fields and divider."""
        blocks = format_blocks(make_table(["A"], [["1"]]), include_metadata=False, now=PINNED_NOW)

        assert "divider" not in [b["type"] for b in blocks]
        assert all("fields" not in b for b in blocks)

    def test_no_data_block(self) -> None:
        """A table without rows shows the no-data notice."""
        blocks = format_blocks(make_table(["A", "B"], []), include_metadata=False, now=PINNED_NOW)

        assert section_texts(blocks) == ["ℹ️ No data found in the spreadsheet"]

    def test_no_headers_is_no_data(self) -> None:
        """A table without headers shows the no-data notice."""
        blocks = format_blocks(make_table([], [["1"]]), include_metadata=False, now=PINNED_NOW)

        assert section_texts(blocks) == ["ℹ️ No data found in the spreadsheet"]

    def test_rows_padded_and_truncated_to_header_width(self) -> None:
        """Rows are fitted to the header width with dashes for blanks."""
        table = make_table(["A", "B", "C"], [["x"], ["1", "", "3", "extra"]])
        blocks = format_blocks(table, include_metadata=False, now=PINNED_NOW)

        assert section_texts(blocks)[2:] == ["x | - | -", "1 | - | 3"]

    def test_timestamp_pinned(self) -> None:
        """The context block shows the retrieval time."""
        blocks = format_blocks(make_table(["A"], [["1"]]), now=PINNED_NOW)

        assert blocks[-1] == {
            "type": "context",
            "elements": [
                {"type": "mrkdwn", "text": "📅 Retrieved at: 2024-05-01T12:00:00+00:00"}
            ],
        }

    def test_deterministic_for_same_input(self) -> None:
        table = make_table(["A", "B"], [["1", "2"]])
        assert format_blocks(table, now=PINNED_NOW) == format_blocks(table, now=PINNED_NOW)


class TestSlackNotifier:
    """Tests for SlackNotifier delivery."""

    def test_table_notification_posted(self) -> None:
        """Should post blocks with a plain-text fallback."""
        client = FakeSlackClient()
        notifier = SlackNotifier(client, channel="#sheets", enabled=True)  # type: ignore[arg-type]

        outcome = notifier.send_table_notification(make_table(["A"], [["1"]]), max_rows=25)

        assert outcome
        message = client.messages[0]
        assert message["channel"] == "#sheets"
        assert message["text"] == "Google Sheets data: Sheet1"
        assert message["unfurl_links"] is False
        assert message["blocks"][0]["type"] == "header"

    def test_explicit_channel_and_thread(self) -> None:
        """Channel and thread arguments override the defaults."""
        client = FakeSlackClient()
        notifier = SlackNotifier(client, channel="#sheets", enabled=True)  # type: ignore[arg-type]

        notifier.send_message("hello", channel="#other", thread_ts="123.456")

        assert client.messages[0]["channel"] == "#other"
        assert client.messages[0]["thread_ts"] == "123.456"
        assert client.messages[0]["text"] == "hello"

    def test_disabled_sends_nothing(self) -> None:
        """A disabled notifier reports why and posts nothing."""
        client = FakeSlackClient()
        notifier = SlackNotifier(client, channel="#sheets", enabled=False)  # type: ignore[arg-type]

        outcome = notifier.send_message("hello")

        assert not outcome
        assert outcome.reason == "disabled"
        assert client.messages == []

    def test_enabled_without_client_is_disabled(self) -> None:
        """A missing token disables the notifier."""
        notifier = SlackNotifier.from_token("", channel="#sheets", enabled=True)

        assert notifier.is_enabled() is False
        assert not notifier.send_message("hello")

    def test_missing_channel(self) -> None:
        """Nothing is posted without a channel."""
        client = FakeSlackClient()
        notifier = SlackNotifier(client, channel="", enabled=True)  # type: ignore[arg-type]

        outcome = notifier.send_message("hello")

        assert outcome.reason == "no channel"
        assert client.messages == []

    def test_api_error_reported_not_raised(self) -> None:
        """Slack API errors are returned as the outcome reason."""
        error = SlackApiError("channel_not_found", {"ok": False, "error": "channel_not_found"})
        notifier = SlackNotifier(
            FakeSlackClient(fail_with=error), channel="#x", enabled=True  # type: ignore[arg-type]
        )

        outcome = notifier.send_message("hello")

        assert not outcome
        assert outcome.reason == "channel_not_found"

    def test_transport_error_reported_not_raised(self) -> None:
        """Network errors are returned as the outcome reason."""
        notifier = SlackNotifier(
            FakeSlackClient(fail_with=ConnectionError("timed out")),  # type: ignore[arg-type]
            channel="#x",
            enabled=True,
        )

        outcome = notifier.send_message("hello")

        assert not outcome
        assert outcome.reason == "timed out"

    def test_not_ok_response(self) -> None:
        """A response with ok=false is a failure."""
        client = FakeSlackClient(response={"ok": False, "error": "not_in_channel"})
        notifier = SlackNotifier(client, channel="#x", enabled=True)  # type: ignore[arg-type]

        outcome = notifier.send_message("hello")

        assert outcome.reason == "not_in_channel"

    def test_connection_check(self) -> None:
        """test_connection is true only for a successful auth check."""
        ok = SlackNotifier(FakeSlackClient(), enabled=True)  # type: ignore[arg-type]
        rejected = SlackNotifier(
            FakeSlackClient(auth_ok=False), enabled=True  # type: ignore[arg-type]
        )
        broken = SlackNotifier(
            FakeSlackClient(fail_with=ConnectionError("down")),  # type: ignore[arg-type]
            enabled=True,
        )

        assert ok.test_connection() is True
        assert rejected.test_connection() is False
        assert broken.test_connection() is False


class TestBlockLimit:
    """Messages stay within the chat.postMessage block limit."""

    def test_default_row_count_capped_with_metadata(self) -> None:
        """Rows beyond the block limit are counted in the marker instead."""
        table = make_table(["A"], [[str(n)] for n in range(100)])
        blocks = format_blocks(table, now=PINNED_NOW)

        assert len(blocks) == MAX_BLOCKS
        assert section_texts(blocks)[-1] == "_+57 more rows_"

    def test_default_row_count_capped_without_metadata(self) -> None:
        """Without metadata there is room for two more rows."""
        table = make_table(["A"], [[str(n)] for n in range(100)])
        blocks = format_blocks(table, include_metadata=False, now=PINNED_NOW)

        assert len(blocks) == MAX_BLOCKS
        assert section_texts(blocks)[-1] == "_+55 more rows_"

    def test_explicit_max_rows_below_limit_kept(self) -> None:
        """A smaller max_rows is honoured as given."""
        table = make_table(["A"], [[str(n)] for n in range(100)])
        blocks = format_blocks(table, max_rows=25, now=PINNED_NOW)

        assert section_texts(blocks)[-1] == "_+75 more rows_"
        assert len(blocks) == 1 + 2 + 2 + 25 + 1 + 1

    def test_send_table_notification_fits_limit(self) -> None:
        """Default notifications never exceed the block limit."""
        client = FakeSlackClient()
        notifier = SlackNotifier(client, channel="#sheets", enabled=True)  # type: ignore[arg-type]

        notifier.send_table_notification(make_table(["A"], [[str(n)] for n in range(60)]))

        assert len(client.messages[0]["blocks"]) <= MAX_BLOCKS
