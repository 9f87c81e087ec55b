"""sheets_bridge - Google Sheets over HTTP, with Slack notifications.

Reads spreadsheet data with a service account or Google OAuth user
credentials and posts formatted summaries to a Slack channel.
"""

__version__ = "1.0.0"

from sheets_bridge.exceptions import (
    ConfigurationError,
    NotFoundError,
    SheetsBridgeError,
    UpstreamError,
    ValidationError,
)
from sheets_bridge.normalize import filter_non_empty, to_records
from sheets_bridge.outcome import Outcome
from sheets_bridge.ranges import build_range, column_to_letter

__all__ = [
    "ConfigurationError",
    "NotFoundError",
    "Outcome",
    "SheetsBridgeError",
    "UpstreamError",
    "ValidationError",
    "__version__",
    "build_range",
    "column_to_letter",
    "filter_non_empty",
    "to_records",
]
