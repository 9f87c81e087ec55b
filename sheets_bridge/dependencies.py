"""Process-wide services and their FastAPI dependencies.

Services are built once during application startup and stored in app.state.
Endpoints receive them through Depends(...), so tests can substitute fakes.
"""

from dataclasses import dataclass

from fastapi import Request

from sheets_bridge.config import Settings
from sheets_bridge.credentials import resolve_credentials
from sheets_bridge.oauth import GoogleOAuthManager
from sheets_bridge.sheets import SheetsService
from sheets_bridge.slack import SlackNotifier


@dataclass
class Services:
    """Everything request handlers need besides settings."""

    oauth: GoogleOAuthManager
    sheets: SheetsService
    slack: SlackNotifier


def build_services(settings: Settings) -> Services:
    """Construct the services from settings.

    The Sheets client itself is created on first use, since the OAuth
    credentials may only exist after the user completes the consent flow.
    """
    oauth = GoogleOAuthManager(
        client_id=settings.google_oauth_client_id,
        client_secret=settings.google_oauth_client_secret,
        redirect_uri=settings.google_oauth_redirect_uri,
        token_file=settings.google_oauth_token_file,
    )
    sheets = SheetsService(lambda: resolve_credentials(settings, oauth))
    slack = SlackNotifier.from_token(
        settings.slack_bot_token,
        channel=settings.slack_channel,
        enabled=settings.slack_enable_notifications,
    )
    return Services(oauth=oauth, sheets=sheets, slack=slack)


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services stored during lifespan."""
    return request.app.state.services


def get_oauth_manager(request: Request) -> GoogleOAuthManager:
    return get_services(request).oauth


def get_sheets_service(request: Request) -> SheetsService:
    return get_services(request).sheets


def get_slack_notifier(request: Request) -> SlackNotifier:
    return get_services(request).slack


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with."""
    return request.app.state.settings
