"""Exceptions raised by the sheets bridge services.

Each exception carries the HTTP status the API layer answers with, so
endpoints can turn any service failure into the JSON error envelope.
"""

from __future__ import annotations


class SheetsBridgeError(Exception):
    """Base exception for service-layer errors."""

    status_code = 500

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(SheetsBridgeError):
    """Raised when credentials or client settings are missing or invalid."""


class ValidationError(SheetsBridgeError):
    """Raised when a required request parameter is missing."""

    status_code = 400


class UpstreamError(SheetsBridgeError):
    """Raised when Google or Slack rejects a call.

    The message is the upstream message, passed through unchanged.
    """


class NotFoundError(SheetsBridgeError):
    """Raised when the target spreadsheet has no sheets."""
