"""Google OAuth token lifecycle.

The OAuth path is an alternative to a service account for reading sheets:
1. Client calls GET /auth/google and opens the returned consent URL
2. Google redirects back to /auth/google/callback?code=...
3. The code is exchanged for tokens, which are written to a single JSON file
4. Sheets requests load user credentials from that file

The existence of the token file is the only "authorized" signal. Tokens are
not inspected for expiry and there is no refresh bookkeeping: an expired
grant shows up as a failing downstream call, and the fix is to run the flow
again.
"""

from __future__ import annotations

import json
import ssl
from collections.abc import Callable
from pathlib import Path
from typing import Any

import certifi
import httpx
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from loguru import logger

from sheets_bridge.exceptions import ConfigurationError, UpstreamError
from sheets_bridge.outcome import Outcome

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"

REVOKE_TIMEOUT = 30

FlowFactory = Callable[[], Flow]
Revoker = Callable[[str], None]


def revoke_token(token: str) -> None:
    """Revoke an access or refresh token at Google's revocation endpoint."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    response = httpx.post(
        REVOKE_URI,
        params={"token": token},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=REVOKE_TIMEOUT,
        verify=ssl_context,
    )
    response.raise_for_status()


class GoogleOAuthManager:
    """Manages the OAuth consent flow and the persisted token file.

    Dependencies are injected via the constructor for testability:
    ``flow_factory`` builds the google-auth-oauthlib Flow and ``revoker``
    calls the revocation endpoint.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        token_file: Path,
        flow_factory: FlowFactory | None = None,
        revoker: Revoker = revoke_token,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self.token_file = Path(token_file)
        self._flow_factory = flow_factory or self._create_flow
        self._revoker = revoker

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._redirect_uri)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError(
                "OAuth client is not configured. Set GOOGLE_OAUTH_CLIENT_ID/"
                "GOOGLE_OAUTH_CLIENT_SECRET/GOOGLE_OAUTH_REDIRECT_URI."
            )

    def _create_flow(self) -> Flow:
        """Create Google OAuth flow for read-only spreadsheet access."""
        client_config = {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self._redirect_uri],
            }
        }

        # The callback builds a fresh Flow, so no PKCE verifier can be carried over
        return Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            redirect_uri=self._redirect_uri,
            autogenerate_code_verifier=False,
        )

    def generate_auth_url(self) -> str:
        """Return the consent URL requesting offline access with a forced prompt."""
        self._require_configured()
        flow = self._flow_factory()
        authorization_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
        )
        return authorization_url

    def handle_callback(self, code: str) -> None:
        """Exchange an authorization code for tokens and persist them.

        Raises:
            ConfigurationError: The OAuth client is not configured, or the
                token file could not be written.
            UpstreamError: Google rejected the exchange. The token file is
                left untouched.
        """
        self._require_configured()
        flow = self._flow_factory()
        try:
            tokens = flow.fetch_token(code=code)
        except Exception as e:
            logger.warning("OAuth token exchange failed", extra={"error": str(e)})
            raise UpstreamError(str(e) or "OAuth token exchange failed", cause=e) from e

        try:
            self._persist_tokens(dict(tokens))
        except OSError as e:
            logger.error(
                "Failed to write OAuth token file",
                extra={"token_file": str(self.token_file), "error": str(e)},
            )
            raise ConfigurationError(
                f"Failed to store OAuth tokens in {self.token_file}: {e}", cause=e
            ) from e

        logger.info("OAuth tokens stored", extra={"token_file": str(self.token_file)})

    def is_authorized(self) -> bool:
        """True when the token file exists. Never raises."""
        try:
            return self.token_file.exists()
        except OSError:
            return False

    def load_tokens(self) -> dict[str, Any] | None:
        """Read the persisted token payload, or None when absent or unreadable."""
        if not self.is_authorized():
            return None
        try:
            tokens: dict[str, Any] = json.loads(self.token_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "Failed to read OAuth token file",
                extra={"token_file": str(self.token_file), "error": str(e)},
            )
            return None
        return tokens

    def load_credentials(self) -> Credentials | None:
        """Build user credentials from the token file, if present.

        The payload is not validated here; a malformed file surfaces as a
        failure of the Sheets call that uses these credentials.
        """
        tokens = self.load_tokens()
        if tokens is None:
            return None

        return Credentials(
            token=tokens.get("access_token"),
            refresh_token=tokens.get("refresh_token"),
            token_uri=TOKEN_URI,
            client_id=self._client_id or None,
            client_secret=self._client_secret or None,
            scopes=SCOPES,
        )

    def revoke(self) -> Outcome:
        """Revoke the stored grant and delete the token file.

        Both steps are best-effort: failures are logged and reported in the
        returned Outcome, never raised. The caller always ends unauthorized
        unless the file could not be removed.
        """
        failures: list[str] = []

        tokens = self.load_tokens()
        token = (tokens or {}).get("refresh_token") or (tokens or {}).get("access_token")
        if token:
            try:
                self._revoker(token)
                logger.info("OAuth grant revoked")
            except Exception as e:
                logger.warning("OAuth revocation failed", extra={"error": str(e)})
                failures.append(f"revoke failed: {e}")

        if self.is_authorized():
            try:
                self.token_file.unlink()
            except OSError as e:
                logger.warning(
                    "Failed to delete OAuth token file",
                    extra={"token_file": str(self.token_file), "error": str(e)},
                )
                failures.append(f"delete failed: {e}")

        if failures:
            return Outcome.failed("; ".join(failures))
        return Outcome.success()

    def _persist_tokens(self, tokens: dict[str, Any]) -> None:
        self.token_file.parent.mkdir(parents=True, exist_ok=True)
        self.token_file.write_text(json.dumps(tokens, indent=2, default=str), encoding="utf-8")
