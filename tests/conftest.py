"""Shared test fixtures."""

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sheets_bridge.config import Settings
from sheets_bridge.dependencies import Services
from sheets_bridge.main import create_app
from sheets_bridge.oauth import GoogleOAuthManager
from sheets_bridge.sheets import SheetsService
from sheets_bridge.slack import SlackNotifier
from tests.fakes import FakeFlow, FakeRevoker, FakeSheetsApi, FakeSlackClient, sheet_metadata

ENV_PREFIXES = ("GOOGLE_", "SLACK_", "PORT", "ENVIRONMENT", "DEBUG", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of Settings."""
    for name in list(os.environ):
        if name.upper().startswith(ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    return tmp_path / "tokens" / "google-oauth-tokens.json"


@pytest.fixture
def settings(token_file: Path) -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        google_oauth_client_id="client-id",
        google_oauth_client_secret="client-secret",
        google_oauth_redirect_uri="http://localhost:3000/auth/google/callback",
        google_oauth_token_file=token_file,
        slack_bot_token="xoxb-test",
        slack_channel="#sheets",
        slack_enable_notifications=True,
    )


@pytest.fixture
def fake_api() -> FakeSheetsApi:
    return FakeSheetsApi(
        values_by_range={
            "Sheet1": [["Name", "Age"], ["Ada", "36"], ["Grace", "45"]],
        },
        metadata=sheet_metadata(),
    )


@pytest.fixture
def sheets_service(fake_api: FakeSheetsApi) -> SheetsService:
    return SheetsService(
        lambda: object(),  # type: ignore[arg-type, return-value]
        api_factory=lambda _credentials: fake_api,
        http_factory=None,
    )


@pytest.fixture
def fake_flow() -> FakeFlow:
    return FakeFlow()


@pytest.fixture
def fake_revoker() -> FakeRevoker:
    return FakeRevoker()


@pytest.fixture
def oauth_manager(
    token_file: Path, fake_flow: FakeFlow, fake_revoker: FakeRevoker
) -> GoogleOAuthManager:
    return GoogleOAuthManager(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:3000/auth/google/callback",
        token_file=token_file,
        flow_factory=lambda: fake_flow,  # type: ignore[arg-type, return-value]
        revoker=fake_revoker,
    )


@pytest.fixture
def fake_slack() -> FakeSlackClient:
    return FakeSlackClient()


@pytest.fixture
def notifier(fake_slack: FakeSlackClient) -> SlackNotifier:
    return SlackNotifier(fake_slack, channel="#sheets", enabled=True)  # type: ignore[arg-type]


@pytest.fixture
def services(
    oauth_manager: GoogleOAuthManager, sheets_service: SheetsService, notifier: SlackNotifier
) -> Services:
    return Services(oauth=oauth_manager, sheets=sheets_service, slack=notifier)


@pytest.fixture
def client(settings: Settings, services: Services) -> Iterator[TestClient]:
    app = create_app(settings, services)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
