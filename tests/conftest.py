"""
Shared pytest fixtures for the submission ledger test suite.

This module provides fixtures that are automatically available to all test files:
- An isolated configuration using the in-memory store backend
- A scripted in-memory store and a recording sleep
- A fixed clock for deterministic timestamps
- FastAPI TestClient instances wired to the in-memory store

No fixture ever reaches the network.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from submission_ledger.api.server import create_app
from submission_ledger.config import AppConfig, AppendSettings, GitHubSettings, StoreSettings
from submission_ledger.ledger import AppendService, ExponentialBackoff
from tests.constants import FIXED_NOW, LEDGER_PATH
from tests.fakes import RecordingSleep, ScriptedStore


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration for the in-memory backend with fast, jitter-free retries."""
    return AppConfig(
        github=GitHubSettings(
            token="test-token",
            repo="octo/ledger",
            file_path=LEDGER_PATH,
        ),
        store=StoreSettings(backend="memory"),
        append=AppendSettings(
            max_attempts=5,
            max_transient_retries=3,
            base_delay_seconds=0.01,
            max_delay_seconds=0.05,
            jitter=False,
            request_timeout_seconds=5.0,
        ),
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep developer shell variables and any local .env out of every test."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "HOST",
        "PORT",
        "CORS_ALLOW_ORIGIN",
        "LEDGER_PRODUCTION",
        "GITHUB_TOKEN",
        "GITHUB_REPO",
        "GITHUB_FILE_PATH",
        "GITHUB_BRANCH",
        "GITHUB_API_URL",
        "LEDGER_STORE_BACKEND",
        "LEDGER_MAX_ATTEMPTS",
        "LEDGER_REQUEST_TIMEOUT",
        "LEDGER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def store() -> ScriptedStore:
    """Empty scripted in-memory store."""
    return ScriptedStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    """Sleep replacement that records requested delays and returns at once."""
    return RecordingSleep()


@pytest.fixture
def fixed_clock():
    """Clock that always returns :data:`FIXED_NOW`."""
    return lambda: FIXED_NOW


@pytest.fixture
def service(store: ScriptedStore, sleep: RecordingSleep, fixed_clock) -> AppendService:
    """Append service over the scripted store, without real sleeps or jitter."""
    return AppendService(
        store,
        backoff=ExponentialBackoff(base_delay=0.1, max_delay=1.0, jitter=False),
        max_attempts=5,
        max_transient_retries=3,
        sleep=sleep,
        clock=fixed_clock,
    )


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_client(
    app_config: AppConfig,
    store: ScriptedStore,
    service: AppendService,
    fixed_clock,
) -> Generator[TestClient, None, None]:
    """
    FastAPI TestClient backed by the scripted store.

    Entered as a context manager so the app lifespan (store open/close) runs.
    """
    app = create_app(app_config, store=store, service=service, clock=fixed_clock)
    with TestClient(app) as client:
        yield client
