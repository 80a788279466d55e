import json

import pytest
from click.testing import CliRunner

import app
from auth.credential_store import MemoryCredentialStore
from auth.session import SessionCoordinator
from tests.helpers import BrowserStub, TokenFnRecorder, make_record


@pytest.fixture(autouse=True)
def _quiet_app(monkeypatch) -> None:
    monkeypatch.setattr(app, "load_env", lambda: None)
    monkeypatch.setattr(app, "setup_logging", lambda: False)
    monkeypatch.setenv("GOOGLE_OAUTH2_CLIENT_ID", "client-id")
    monkeypatch.setenv("GOOGLE_OAUTH2_CLIENT_SECRET", "client-secret")
    monkeypatch.delenv("GOOGLE_OAUTH2_SCOPES", raising=False)
    monkeypatch.delenv("GTASKS_CALLBACK_TIMEOUT", raising=False)
    monkeypatch.delenv("GTASKS_ACCESS_TOKEN", raising=False)


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def coordinator_factory(monkeypatch, store):
    created: list[SessionCoordinator] = []

    def _factory(settings):
        coordinator = SessionCoordinator(
            credential_store=store,
            scope=settings.scope,
            open_browser=BrowserStub(),
            exchange_code_fn=TokenFnRecorder(),
            refresh_token_fn=TokenFnRecorder(make_record("access-2", None)),
        )
        created.append(coordinator)
        return coordinator

    monkeypatch.setattr(app, "create_coordinator", _factory)
    return created


def _invoke(*args: str):
    return CliRunner().invoke(app.cli, list(args))


def test_login_prints_redacted_token(coordinator_factory, store) -> None:
    result = _invoke("login")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["value"]["access_token"] == "***"
    assert payload["value"]["token_type"] == "Bearer"
    assert store._secret == "refresh-1"


def test_login_show_secrets(coordinator_factory) -> None:
    result = _invoke("--show-secrets", "login")

    assert json.loads(result.stdout)["value"]["access_token"] == "access-1"


def test_restore_without_stored_token_fails(coordinator_factory) -> None:
    result = _invoke("restore")

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert payload["error"]["kind"] == "store_not_found"
    assert payload["error"]["category"] == "sign_in_again"


def test_restore_backfills_refresh_token(coordinator_factory, store) -> None:
    store._secret = "stored-refresh"

    result = _invoke("--show-secrets", "restore")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["value"]["refresh_token"] == "stored-refresh"


def test_logout_is_idempotent(coordinator_factory, store, monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_OAUTH2_CLIENT_ID")
    store._secret = "stored-refresh"

    first = _invoke("logout")
    second = _invoke("logout")

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert store._secret is None


def test_missing_client_config_is_reported(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_OAUTH2_CLIENT_SECRET")

    result = _invoke("login")

    assert result.exit_code != 0
    assert "GOOGLE_OAUTH2_CLIENT_SECRET" in result.output


def test_tasks_with_access_token(monkeypatch) -> None:
    seen: list[str] = []

    async def _list_tasks(token: str) -> dict:
        seen.append(token)
        return {"items": [{"title": "Buy milk"}]}

    monkeypatch.setattr(app, "list_tasks", _list_tasks)

    result = _invoke("tasks", "--access-token", "ya29.given")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["value"]["items"][0]["title"] == "Buy milk"
    assert seen == ["ya29.given"]


def test_tasks_restores_session_first(monkeypatch, coordinator_factory, store) -> None:
    store._secret = "stored-refresh"
    seen: list[str] = []

    async def _list_tasks(token: str) -> dict:
        seen.append(token)
        return {"items": []}

    monkeypatch.setattr(app, "list_tasks", _list_tasks)

    result = _invoke("tasks")

    assert result.exit_code == 0, result.output
    assert seen == ["access-2"]


def test_create_coordinator_uses_keyring_settings() -> None:
    settings = app.Settings(
        client_id="id",
        client_secret="secret",
        scope="scope",
        keyring_service="svc",
        keyring_account="acct",
        callback_timeout=30.0,
    )

    coordinator = app.create_coordinator(settings)

    assert coordinator.scope == "scope"
    assert coordinator.callback_timeout == 30.0
    assert coordinator._store.service == "svc"
    assert coordinator._store.account == "acct"
