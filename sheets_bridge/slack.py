"""Slack notifications for sheet data.

Sheet rows are rendered as Block Kit sections (one per row) and posted with
chat.postMessage. Delivery is best-effort: nothing here raises past
SlackNotifier, failures are logged and reported as a falsy Outcome.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from sheets_bridge.outcome import Outcome

DEFAULT_MAX_ROWS = 50

# chat.postMessage rejects messages with more blocks than this
MAX_BLOCKS = 50

Block = dict[str, Any]


@dataclass(frozen=True)
class SlackMetadata:
    spreadsheet_id: str
    sheet_name: str
    total_rows: int
    actual_data_rows: int


@dataclass(frozen=True)
class SlackTableData:
    """Table to post: headers, data rows (header row excluded) and metadata."""

    headers: list[str]
    rows: list[list[str]]
    metadata: SlackMetadata


def _section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _format_row(row: Sequence[Any], width: int) -> str:
    cells = list(row[:width]) + [""] * max(0, width - len(row))
    return " | ".join(str(cell) if cell not in (None, "") else "-" for cell in cells)


def format_blocks(
    data: SlackTableData,
    include_metadata: bool = True,
    max_rows: int = DEFAULT_MAX_ROWS,
    now: datetime | None = None,
) -> list[Block]:
    """Render table data as Slack blocks.

    Output is deterministic for identical inputs apart from the trailing
    timestamp, which can be pinned with ``now``.
    """
    headers, rows, metadata = data.headers, data.rows, data.metadata
    blocks: list[Block] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"📊 Google Sheets Data: {metadata.sheet_name}",
            },
        }
    ]

    if include_metadata:
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Spreadsheet ID:*\n{metadata.spreadsheet_id}"},
                    {"type": "mrkdwn", "text": f"*Sheet Name:*\n{metadata.sheet_name}"},
                    {"type": "mrkdwn", "text": f"*Total Rows:*\n{metadata.total_rows}"},
                    {"type": "mrkdwn", "text": f"*Data Rows:*\n{metadata.actual_data_rows}"},
                ],
            }
        )
        blocks.append({"type": "divider"})

    if headers and rows:
        width = len(headers)
        blocks.append(_section(" | ".join(f"*{header}*" for header in headers)))
        blocks.append(_section(" | ".join("---" for _ in headers)))
        # Room is left for the "more rows" marker and the context block
        row_limit = min(max_rows, MAX_BLOCKS - len(blocks) - 2)
        blocks.extend(_section(_format_row(row, width)) for row in rows[:row_limit])

        hidden = len(rows) - row_limit
        if hidden > 0:
            blocks.append(_section(f"_+{hidden} more rows_"))
    else:
        blocks.append(_section("ℹ️ No data found in the spreadsheet"))

    timestamp = (now or datetime.now(UTC)).isoformat()
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"📅 Retrieved at: {timestamp}"}],
        }
    )
    return blocks


class SlackNotifier:
    """Posts messages to a Slack channel when notifications are enabled."""

    def __init__(self, client: WebClient | None, channel: str = "", enabled: bool = False) -> None:
        self._client = client
        self.channel = channel
        self._enabled = enabled

    @classmethod
    def from_token(cls, token: str, channel: str = "", enabled: bool = False) -> SlackNotifier:
        client = WebClient(token=token) if token else None
        return cls(client, channel=channel, enabled=enabled)

    def is_enabled(self) -> bool:
        return self._enabled and self._client is not None

    def dispatch(
        self,
        channel: str | None,
        blocks: list[Block] | None = None,
        text: str | None = None,
        thread_ts: str | None = None,
    ) -> Outcome:
        """Post a message. Never raises."""
        if not self.is_enabled():
            logger.info("Slack notifications are disabled or not configured")
            return Outcome.failed("disabled")

        target = channel or self.channel
        if not target:
            logger.warning("No Slack channel configured")
            return Outcome.failed("no channel")

        try:
            result = self._client.chat_postMessage(  # type: ignore[union-attr]
                channel=target,
                blocks=blocks,
                text=text or "Google Sheets data",
                thread_ts=thread_ts,
                unfurl_links=False,
                unfurl_media=False,
            )
        except SlackApiError as e:
            error = e.response.get("error", str(e)) if e.response is not None else str(e)
            logger.error("Slack API rejected message", extra={"channel": target, "error": error})
            return Outcome.failed(str(error))
        except Exception as e:
            logger.exception("Error sending Slack message", extra={"channel": target})
            return Outcome.failed(str(e) or type(e).__name__)

        if not result.get("ok"):
            error = result.get("error", "unknown error")
            logger.error("Failed to send Slack message", extra={"channel": target, "error": error})
            return Outcome.failed(str(error))

        logger.info("Slack message sent", extra={"channel": target})
        return Outcome.success()

    def send_table_notification(
        self,
        data: SlackTableData,
        channel: str | None = None,
        thread_ts: str | None = None,
        include_metadata: bool = True,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> Outcome:
        """Format sheet data as blocks and post it."""
        if not self.is_enabled():
            logger.info("Slack notifications are disabled or not configured")
            return Outcome.failed("disabled")

        try:
            blocks = format_blocks(data, include_metadata=include_metadata, max_rows=max_rows)
        except Exception as e:
            logger.exception("Failed to format Slack blocks")
            return Outcome.failed(str(e) or type(e).__name__)

        return self.dispatch(
            channel,
            blocks,
            text=f"Google Sheets data: {data.metadata.sheet_name}",
            thread_ts=thread_ts,
        )

    def send_message(
        self, text: str, channel: str | None = None, thread_ts: str | None = None
    ) -> Outcome:
        """Post a plain text message."""
        return self.dispatch(channel, text=text, thread_ts=thread_ts)

    def test_connection(self) -> bool:
        """Check the bot token with auth.test."""
        if not self.is_enabled():
            return False

        try:
            result = self._client.auth_test()  # type: ignore[union-attr]
        except Exception:
            logger.exception("Slack connection test failed")
            return False
        return result.get("ok") is True
