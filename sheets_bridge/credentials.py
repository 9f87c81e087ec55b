"""Google credential resolution for the Sheets API.

Order of preference:
1. Service account key file, when it exists and looks like a key
2. Service account assembled from the individual environment fields
3. OAuth user credentials from the token file
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from google.auth.credentials import Credentials
from google.oauth2 import service_account
from loguru import logger

from sheets_bridge.config import Settings
from sheets_bridge.exceptions import ConfigurationError
from sheets_bridge.oauth import SCOPES, TOKEN_URI, GoogleOAuthManager

REQUIRED_KEY_FIELDS = ("type", "private_key", "client_email")


def _load_key_file(path: str) -> dict[str, Any] | None:
    """Return the parsed key file, or None when missing or not a key."""
    key_path = Path(path)
    if not key_path.is_file():
        return None

    try:
        info: dict[str, Any] = json.loads(key_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(
            "Service account key file is unreadable, falling back to environment variables",
            extra={"key_file": path, "error": str(e)},
        )
        return None

    if not all(info.get(field) for field in REQUIRED_KEY_FIELDS):
        logger.warning(
            "Service account key file is invalid, falling back to environment variables",
            extra={"key_file": path},
        )
        return None
    return info


def _service_account_info_from_settings(settings: Settings) -> dict[str, Any]:
    return {
        "type": "service_account",
        "project_id": settings.google_project_id,
        "private_key_id": settings.google_private_key_id,
        "private_key": settings.google_private_key,
        "client_email": settings.google_client_email,
        "client_id": settings.google_client_id,
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": TOKEN_URI,
        "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
        "client_x509_cert_url": (
            "https://www.googleapis.com/robot/v1/metadata/x509/"
            f"{settings.google_client_email}"
        ),
    }


def resolve_credentials(settings: Settings, oauth: GoogleOAuthManager) -> Credentials:
    """Pick the credentials used for Sheets calls.

    Raises:
        ConfigurationError: No usable credential path, or the service account
            fields are rejected by google-auth.
    """
    if settings.google_service_account_key_file:
        info = _load_key_file(settings.google_service_account_key_file)
        if info is not None:
            logger.debug("Using service account key file")
            return _from_service_account_info(info)

    if settings.google_project_id and settings.google_private_key and settings.google_client_email:
        logger.debug("Using service account from environment")
        return _from_service_account_info(_service_account_info_from_settings(settings))

    user_credentials = oauth.load_credentials()
    if user_credentials is not None:
        logger.debug("Using OAuth user credentials")
        return user_credentials

    raise ConfigurationError(
        "No Google credentials available. Configure a service account or "
        "complete the OAuth flow at /auth/google."
    )


def _from_service_account_info(info: dict[str, Any]) -> Credentials:
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (ValueError, KeyError) as e:
        raise ConfigurationError(
            f"Failed to initialize Google Sheets authentication: {e}", cause=e
        ) from e
