"""Tests for submission_ledger.config loading, overrides and validation."""

import configparser
import dataclasses
import os

import pytest

from submission_ledger.config import (
    CONFIG_EXAMPLE,
    AppConfig,
    AppendSettings,
    ConfigError,
    GitHubSettings,
    StoreSettings,
    _load_from_ini,
    load_config,
    print_config_summary,
    redacted_summary,
    validate_config,
)


def _github_config(**github) -> AppConfig:
    settings = {"token": "ghp_secret", "repo": "octo/ledger", "file_path": "data/s.json"}
    settings.update(github)
    return AppConfig(github=GitHubSettings(**settings))


# ============================================================================
# LOADING
# ============================================================================


@pytest.mark.unit
def test_defaults_without_any_source(tmp_path):
    cfg = load_config(tmp_path / "missing.ini", use_dotenv=False)

    assert cfg.server.port == 8080
    assert cfg.github.branch == "main"
    assert cfg.security.cors_origins == ("*",)
    assert cfg.store.backend == "github"
    assert cfg.append.max_attempts == 5


@pytest.mark.unit
def test_example_ini_is_loadable():
    cfg = load_config(CONFIG_EXAMPLE, use_dotenv=False)

    assert cfg.github.file_path == "data/submissions.json"
    assert cfg.github.token == ""
    assert cfg.logging.format == "detailed"


@pytest.mark.unit
def test_ini_values_applied(tmp_path):
    ini = tmp_path / "server.ini"
    ini.write_text(
        "[server]\nport = 9001\n"
        "[security]\ncors_origins = https://a.example, https://b.example\nproduction = yes\n"
        "[github]\nrepo = octo/ledger\nbranch = ledger-data\ntimeout_seconds = 3.5\n"
        "[store]\nbackend = MEMORY\n"
        "[append]\nmax_attempts = 9\njitter = false\ncommit_message = chore: sign-in\n"
        "[logging]\nlevel = debug\nformat = json\n"
    )

    cfg = load_config(ini, use_dotenv=False)

    assert cfg.server.port == 9001
    assert cfg.security.cors_origins == ("https://a.example", "https://b.example")
    assert cfg.is_production is True
    assert cfg.docs_should_be_enabled is False
    assert cfg.github.repo == "octo/ledger"
    assert cfg.github.branch == "ledger-data"
    assert cfg.github.timeout_seconds == 3.5
    assert cfg.store.backend == "memory"
    assert cfg.append.max_attempts == 9
    assert cfg.append.jitter is False
    assert cfg.append.commit_message == "chore: sign-in"
    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.format == "json"


@pytest.mark.unit
def test_ini_ignores_unknown_enum_values():
    parser = configparser.ConfigParser(interpolation=None)
    parser.read_string("[logging]\nformat = xml\n[security]\ndocs_enabled = maybe\n")

    cfg = _load_from_ini(parser, AppConfig())

    assert cfg.logging.format == "detailed"
    assert cfg.security.docs_enabled == "auto"


@pytest.mark.unit
def test_env_overrides_ini(tmp_path, monkeypatch):
    ini = tmp_path / "server.ini"
    ini.write_text("[server]\nport = 9001\n[github]\nrepo = octo/from-ini\n")
    monkeypatch.setenv("PORT", "7000")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
    monkeypatch.setenv("GITHUB_REPO", "octo/from-env")
    monkeypatch.setenv("GITHUB_FILE_PATH", "quiz/logins.json")
    monkeypatch.setenv("GITHUB_BRANCH", "data")
    monkeypatch.setenv("CORS_ALLOW_ORIGIN", "https://quiz.example")
    monkeypatch.setenv("LEDGER_STORE_BACKEND", "memory")
    monkeypatch.setenv("LEDGER_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("LEDGER_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("LEDGER_LOG_LEVEL", "warning")

    cfg = load_config(ini, use_dotenv=False)

    assert cfg.server.port == 7000
    assert cfg.github.token == "ghp_env"
    assert cfg.github.repo == "octo/from-env"
    assert cfg.github.file_path == "quiz/logins.json"
    assert cfg.github.branch == "data"
    assert cfg.security.cors_origins == ("https://quiz.example",)
    assert cfg.store.backend == "memory"
    assert cfg.append.max_attempts == 3
    assert cfg.append.request_timeout_seconds == 2.5
    assert cfg.logging.level == "WARNING"


@pytest.mark.unit
def test_blank_env_values_do_not_override(tmp_path, monkeypatch):
    ini = tmp_path / "server.ini"
    ini.write_text("[github]\nbranch = data\n")
    monkeypatch.setenv("GITHUB_BRANCH", "  ")

    cfg = load_config(ini, use_dotenv=False)

    assert cfg.github.branch == "data"


@pytest.fixture
def dotenv_file(tmp_path):
    """A .env file in the working directory; its variables are removed afterwards."""
    path = tmp_path / ".env"
    path.write_text("GITHUB_REPO=octo/from-dotenv\nGITHUB_BRANCH=dotenv-branch\n")
    yield path
    for name in ("GITHUB_REPO", "GITHUB_BRANCH"):
        os.environ.pop(name, None)


@pytest.mark.unit
def test_dotenv_read_from_working_directory(dotenv_file, tmp_path):
    cfg = load_config(tmp_path / "missing.ini")

    assert cfg.github.repo == "octo/from-dotenv"
    assert cfg.github.branch == "dotenv-branch"


@pytest.mark.unit
def test_real_environment_wins_over_dotenv(dotenv_file, tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_REPO", "octo/from-shell")

    cfg = load_config(tmp_path / "missing.ini")

    assert cfg.github.repo == "octo/from-shell"
    assert cfg.github.branch == "dotenv-branch"


@pytest.mark.unit
def test_dotenv_skipped_when_disabled(dotenv_file, tmp_path):
    cfg = load_config(tmp_path / "missing.ini", use_dotenv=False)

    assert cfg.github.repo == ""


@pytest.mark.unit
def test_invalid_port_env_raises(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "http")

    with pytest.raises(ValueError):
        load_config(tmp_path / "missing.ini", use_dotenv=False)


@pytest.mark.unit
def test_config_is_immutable():
    cfg = AppConfig()

    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.server.port = 1  # type: ignore[misc]


# ============================================================================
# VALIDATION
# ============================================================================


@pytest.mark.unit
def test_valid_github_config_passes():
    cfg = _github_config()

    assert validate_config(cfg) == cfg


@pytest.mark.unit
@pytest.mark.parametrize(
    ("github", "message"),
    [
        ({"token": ""}, "GITHUB_TOKEN is required"),
        ({"repo": ""}, "GITHUB_REPO is required"),
        ({"repo": "just-a-name"}, "GITHUB_REPO is required"),
        ({"repo": "a/b/c"}, "GITHUB_REPO is required"),
        ({"file_path": ""}, "GITHUB_FILE_PATH is required"),
    ],
)
def test_missing_github_settings_rejected(github, message):
    with pytest.raises(ConfigError, match=message):
        validate_config(_github_config(**github))


@pytest.mark.unit
def test_memory_backend_needs_no_credentials():
    cfg = AppConfig(
        github=GitHubSettings(file_path="data/s.json"),
        store=StoreSettings(backend="memory"),
    )

    assert validate_config(cfg).store.backend == "memory"


@pytest.mark.unit
def test_unknown_backend_rejected():
    cfg = dataclasses.replace(_github_config(), store=StoreSettings(backend="s3"))

    with pytest.raises(ConfigError, match="Unknown store backend"):
        validate_config(cfg)


@pytest.mark.unit
@pytest.mark.parametrize(
    "append",
    [
        AppendSettings(max_attempts=0),
        AppendSettings(max_transient_retries=-1),
        AppendSettings(request_timeout_seconds=-1.0),
        AppendSettings(base_delay_seconds=-0.1),
        AppendSettings(max_delay_seconds=-5.0),
    ],
    ids=["attempts", "transient", "timeout", "base-delay", "max-delay"],
)
def test_retry_budgets_validated(append):
    cfg = dataclasses.replace(_github_config(), append=append)

    with pytest.raises(ConfigError):
        validate_config(cfg)


@pytest.mark.unit
def test_empty_branch_falls_back_to_main():
    cfg = validate_config(_github_config(branch=""))

    assert cfg.github.branch == "main"


# ============================================================================
# SUMMARY
# ============================================================================


@pytest.mark.unit
def test_redacted_summary_masks_token():
    summary = redacted_summary(_github_config())

    assert summary["github_token"] == "***(10 chars)"
    assert "ghp_secret" not in repr(summary)


@pytest.mark.unit
def test_redacted_summary_reports_unset_token():
    assert redacted_summary(AppConfig())["github_token"] == "(unset)"


@pytest.mark.unit
def test_token_not_in_config_repr():
    assert "ghp_secret" not in repr(_github_config())


@pytest.mark.unit
def test_print_config_summary(capsys):
    print_config_summary(_github_config())

    out = capsys.readouterr().out
    assert "SUBMISSION LEDGER CONFIGURATION" in out
    assert "octo/ledger" in out
    assert "ghp_secret" not in out
