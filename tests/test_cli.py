"""Tests for the submission-ledger command-line interface."""

import os

import pytest

from submission_ledger import cli


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep CLI commands from reconfiguring the root logger during tests."""
    monkeypatch.setattr(cli, "configure_logging", lambda settings: None)


@pytest.fixture
def memory_env(monkeypatch):
    """Environment selecting the in-memory backend."""
    monkeypatch.setenv("LEDGER_STORE_BACKEND", "memory")
    monkeypatch.setenv("GITHUB_FILE_PATH", "data/cli.json")


@pytest.mark.unit
def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0

    assert "usage: submission-ledger" in capsys.readouterr().out


@pytest.mark.unit
def test_show_config_valid(memory_env, capsys):
    assert cli.main(["show-config"]) == 0

    out = capsys.readouterr().out
    assert "store_backend:" in out
    assert "Configuration OK." in out


@pytest.mark.unit
def test_show_config_reports_missing_token(monkeypatch, capsys):
    monkeypatch.setenv("GITHUB_REPO", "octo/ledger")

    assert cli.main(["show-config"]) == 1

    captured = capsys.readouterr()
    assert "SUBMISSION LEDGER CONFIGURATION" in captured.out
    assert "GITHUB_TOKEN is required" in captured.err


@pytest.mark.unit
def test_show_config_masks_token(monkeypatch, capsys):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_do_not_print")
    monkeypatch.setenv("GITHUB_REPO", "octo/ledger")
    monkeypatch.setenv("GITHUB_FILE_PATH", "data/submissions.json")

    assert cli.main(["show-config"]) == 0

    out = capsys.readouterr().out
    assert "ghp_do_not_print" not in out
    assert "***(16 chars)" in out


@pytest.mark.unit
def test_append_with_memory_backend(memory_env, capsys):
    code = cli.main(["append", "--name", "  Ada ", "--phone", "555-0100"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Appended record #0 to data/cli.json" in out
    assert "1 attempt(s)" in out


@pytest.mark.unit
def test_append_rejects_blank_name(memory_env, capsys):
    assert cli.main(["append", "--name", "   ", "--phone", "555"]) == 1

    assert "name and phone are required" in capsys.readouterr().err


@pytest.mark.unit
def test_append_requires_phone_argument():
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["append", "--name", "Ada"])

    assert exc_info.value.code == 2


@pytest.mark.unit
def test_append_config_error(monkeypatch, capsys):
    monkeypatch.setenv("LEDGER_STORE_BACKEND", "github")

    assert cli.main(["append", "--name", "Ada", "--phone", "1"]) == 1

    assert "Configuration error: GITHUB_TOKEN is required" in capsys.readouterr().err


@pytest.mark.unit
def test_run_passes_cli_overrides(memory_env, monkeypatch):
    calls = []

    def fake_start_server(cfg, *, host=None, port=None):
        calls.append((cfg.store.backend, host, port))

    monkeypatch.setattr("submission_ledger.api.server.start_server", fake_start_server)

    assert cli.main(["run", "--host", "127.0.0.1", "-p", "9000"]) == 0

    assert calls == [("memory", "127.0.0.1", 9000)]


@pytest.mark.unit
def test_run_refuses_invalid_config(monkeypatch):
    monkeypatch.setenv("LEDGER_STORE_BACKEND", "ftp")
    started = []
    monkeypatch.setattr(
        "submission_ledger.api.server.start_server", lambda *a, **kw: started.append(a)
    )

    assert cli.main(["run"]) == 1
    assert started == []


@pytest.mark.unit
def test_append_reads_dotenv_from_working_directory(tmp_path, capsys):
    (tmp_path / ".env").write_text(
        "LEDGER_STORE_BACKEND=memory\nGITHUB_FILE_PATH=data/from-dotenv.json\n"
    )
    try:
        code = cli.main(["append", "--name", "Ada", "--phone", "1"])
    finally:
        for name in ("LEDGER_STORE_BACKEND", "GITHUB_FILE_PATH"):
            os.environ.pop(name, None)

    assert code == 0
    assert "to data/from-dotenv.json" in capsys.readouterr().out
