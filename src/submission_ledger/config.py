"""
Service configuration management.

Configuration is assembled once at startup from several sources with a clear
priority order, then frozen and passed explicitly to every component that
needs it.  There is no module-level config singleton.

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Example config (config/server.example.ini) - development fallback
    4. Built-in defaults (lowest priority)

A ``.env`` file in the working directory is loaded into the environment
before the overrides are applied.  Variables already set in the real
environment are never replaced by ``.env`` values.

Usage:
    from submission_ledger.config import load_config, validate_config

    cfg = load_config()
    validate_config(cfg)
    print(cfg.github.repo)

Environment Variable Mapping:
    HOST                     -> server.host
    PORT                     -> server.port
    CORS_ALLOW_ORIGIN        -> security.cors_origins (comma-separated)
    LEDGER_PRODUCTION        -> security.production
    GITHUB_TOKEN             -> github.token
    GITHUB_REPO              -> github.repo
    GITHUB_FILE_PATH         -> github.file_path
    GITHUB_BRANCH            -> github.branch
    GITHUB_API_URL           -> github.api_url
    LEDGER_STORE_BACKEND     -> store.backend
    LEDGER_MAX_ATTEMPTS      -> append.max_attempts
    LEDGER_REQUEST_TIMEOUT   -> append.request_timeout_seconds
    LEDGER_LOG_LEVEL         -> logging.level
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from dotenv import find_dotenv, load_dotenv

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

STORE_BACKENDS = ("github", "memory")


class ConfigError(ValueError):
    """Raised when the assembled configuration cannot run the service."""


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass(frozen=True)
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8080


@dataclass(frozen=True)
class SecuritySettings:
    """CORS and docs exposure."""

    production: bool = False
    cors_origins: tuple[str, ...] = ("*",)
    docs_enabled: Literal["auto", "enabled", "disabled"] = "auto"


@dataclass(frozen=True)
class GitHubSettings:
    """Location of the ledger file and how to talk to the GitHub API."""

    token: str = field(default="", repr=False)
    repo: str = ""
    file_path: str = ""
    branch: str = "main"
    api_url: str = "https://api.github.com"
    committer_name: str = "Submission Ledger Bot"
    committer_email: str = "noreply@example.com"
    timeout_seconds: float = 10.0
    user_agent: str = "submission-ledger"


@dataclass(frozen=True)
class StoreSettings:
    """Which blob store backend holds the ledger."""

    backend: Literal["github", "memory"] = "github"


@dataclass(frozen=True)
class AppendSettings:
    """Retry budget and deadlines for the append protocol."""

    max_attempts: int = 5
    max_transient_retries: int = 3
    base_delay_seconds: float = 0.2
    max_delay_seconds: float = 5.0
    jitter: bool = True
    request_timeout_seconds: float = 20.0
    commit_message: str = "chore: append login submission"


@dataclass(frozen=True)
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass(frozen=True)
class AppConfig:
    """
    Complete service configuration.

    Aggregates all settings sections.  Built by :func:`load_config` and
    handed to the app factory, the store and the append service.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    append: AppendSettings = field(default_factory=AppendSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production

    @property
    def docs_should_be_enabled(self) -> bool:
        """Determine if API docs should be enabled based on settings."""
        if self.security.docs_enabled == "enabled":
            return True
        if self.security.docs_enabled == "disabled":
            return False
        # "auto" - follow production setting
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.strip().lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> tuple[str, ...]:
    """Parse a comma-separated string to a tuple, stripping whitespace."""
    if not value or value.strip() == "":
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _load_from_ini(parser: configparser.ConfigParser, cfg: AppConfig) -> AppConfig:
    """Return ``cfg`` with every option present in the parsed INI file applied."""
    server: dict[str, Any] = {}
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            server["host"] = parser.get("server", "host")
        if parser.has_option("server", "port"):
            server["port"] = parser.getint("server", "port")

    security: dict[str, Any] = {}
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            security["production"] = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "cors_origins"):
            security["cors_origins"] = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "docs_enabled"):
            val = parser.get("security", "docs_enabled").lower()
            if val in ("auto", "enabled", "disabled"):
                security["docs_enabled"] = val

    github: dict[str, Any] = {}
    if parser.has_section("github"):
        for key in (
            "token",
            "repo",
            "file_path",
            "branch",
            "api_url",
            "committer_name",
            "committer_email",
            "user_agent",
        ):
            if parser.has_option("github", key):
                github[key] = parser.get("github", key).strip()
        if parser.has_option("github", "timeout_seconds"):
            github["timeout_seconds"] = parser.getfloat("github", "timeout_seconds")

    store: dict[str, Any] = {}
    if parser.has_section("store") and parser.has_option("store", "backend"):
        store["backend"] = parser.get("store", "backend").strip().lower()

    append: dict[str, Any] = {}
    if parser.has_section("append"):
        for key in ("max_attempts", "max_transient_retries"):
            if parser.has_option("append", key):
                append[key] = parser.getint("append", key)
        for key in ("base_delay_seconds", "max_delay_seconds", "request_timeout_seconds"):
            if parser.has_option("append", key):
                append[key] = parser.getfloat("append", key)
        if parser.has_option("append", "jitter"):
            append["jitter"] = _parse_bool(parser.get("append", "jitter"))
        if parser.has_option("append", "commit_message"):
            append["commit_message"] = parser.get("append", "commit_message").strip()

    logging_: dict[str, Any] = {}
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            logging_["level"] = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                logging_["format"] = val

    return replace(
        cfg,
        server=replace(cfg.server, **server),
        security=replace(cfg.security, **security),
        github=replace(cfg.github, **github),
        store=replace(cfg.store, **store),
        append=replace(cfg.append, **append),
        logging=replace(cfg.logging, **logging_),
    )


def _apply_env_overrides(cfg: AppConfig) -> AppConfig:
    """Return ``cfg`` with environment variable overrides applied."""
    server: dict[str, Any] = {}
    if env_host := os.getenv("HOST"):
        server["host"] = env_host
    if env_port := os.getenv("PORT"):
        server["port"] = int(env_port)

    security: dict[str, Any] = {}
    if env_production := os.getenv("LEDGER_PRODUCTION"):
        security["production"] = _parse_bool(env_production)
    if env_cors := os.getenv("CORS_ALLOW_ORIGIN"):
        security["cors_origins"] = _parse_list(env_cors)

    github: dict[str, Any] = {}
    for env_name, key in (
        ("GITHUB_TOKEN", "token"),
        ("GITHUB_REPO", "repo"),
        ("GITHUB_FILE_PATH", "file_path"),
        ("GITHUB_BRANCH", "branch"),
        ("GITHUB_API_URL", "api_url"),
    ):
        if value := os.getenv(env_name, "").strip():
            github[key] = value

    store: dict[str, Any] = {}
    if env_backend := os.getenv("LEDGER_STORE_BACKEND"):
        store["backend"] = env_backend.strip().lower()

    append: dict[str, Any] = {}
    if env_attempts := os.getenv("LEDGER_MAX_ATTEMPTS"):
        append["max_attempts"] = int(env_attempts)
    if env_timeout := os.getenv("LEDGER_REQUEST_TIMEOUT"):
        append["request_timeout_seconds"] = float(env_timeout)

    logging_: dict[str, Any] = {}
    if env_log := os.getenv("LEDGER_LOG_LEVEL"):
        logging_["level"] = env_log.upper()

    return replace(
        cfg,
        server=replace(cfg.server, **server),
        security=replace(cfg.security, **security),
        github=replace(cfg.github, **github),
        store=replace(cfg.store, **store),
        append=replace(cfg.append, **append),
        logging=replace(cfg.logging, **logging_),
    )


def load_config(config_file: Path | None = None, *, use_dotenv: bool = True) -> AppConfig:
    """
    Load configuration from all sources with proper priority.

    Args:
        config_file: Explicit INI file to read instead of the default lookup
            (``config/server.ini`` then ``config/server.example.ini``).
        use_dotenv: Load ``.env`` from the working directory first.

    Returns:
        AppConfig: Fully populated, immutable configuration object.
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True), override=False)

    cfg = AppConfig()

    if config_file is None:
        if CONFIG_FILE.exists():
            config_file = CONFIG_FILE
        elif CONFIG_EXAMPLE.exists():
            config_file = CONFIG_EXAMPLE

    if config_file is not None and config_file.exists():
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(config_file)
        cfg = _load_from_ini(parser, cfg)

    return _apply_env_overrides(cfg)


def validate_config(cfg: AppConfig) -> AppConfig:
    """
    Check that ``cfg`` can run the service, filling in safe fallbacks.

    Returns:
        The configuration, with an empty branch replaced by ``main``.

    Raises:
        ConfigError: If a required setting is missing or out of range.
    """
    if cfg.store.backend not in STORE_BACKENDS:
        raise ConfigError(
            f"Unknown store backend {cfg.store.backend!r} (expected one of {STORE_BACKENDS})"
        )

    if cfg.store.backend == "github":
        if not cfg.github.token:
            raise ConfigError("GITHUB_TOKEN is required")
        owner, _, name = cfg.github.repo.partition("/")
        if not owner or not name or "/" in name:
            raise ConfigError("GITHUB_REPO is required (e.g. owner/repo)")

    if not cfg.github.file_path:
        raise ConfigError("GITHUB_FILE_PATH is required (e.g. data/submissions.json)")

    if cfg.append.max_attempts < 1:
        raise ConfigError("append.max_attempts must be at least 1")
    if cfg.append.max_transient_retries < 0:
        raise ConfigError("append.max_transient_retries must not be negative")
    for key in ("base_delay_seconds", "max_delay_seconds", "request_timeout_seconds"):
        if getattr(cfg.append, key) < 0:
            raise ConfigError(f"append.{key} must not be negative")

    if not cfg.github.branch:
        cfg = replace(cfg, github=replace(cfg.github, branch="main"))
    return cfg


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def redacted_summary(cfg: AppConfig) -> dict[str, Any]:
    """
    Configuration summary for diagnostics with the token masked.

    Safe to print or log.
    """
    token = cfg.github.token
    masked = f"***({len(token)} chars)" if token else "(unset)"
    return {
        "server": f"{cfg.server.host}:{cfg.server.port}",
        "production": cfg.is_production,
        "cors_origins": list(cfg.security.cors_origins),
        "docs_enabled": cfg.docs_should_be_enabled,
        "store_backend": cfg.store.backend,
        "github_repo": cfg.github.repo,
        "github_file_path": cfg.github.file_path,
        "github_branch": cfg.github.branch,
        "github_api_url": cfg.github.api_url,
        "github_token": masked,
        "max_attempts": cfg.append.max_attempts,
        "max_transient_retries": cfg.append.max_transient_retries,
        "request_timeout_seconds": cfg.append.request_timeout_seconds,
        "log_level": cfg.logging.level,
    }


def print_config_summary(cfg: AppConfig) -> None:
    """Print a summary of ``cfg`` to stdout."""
    summary = redacted_summary(cfg)
    print("\n" + "=" * 60)
    print("SUBMISSION LEDGER CONFIGURATION")
    print("=" * 60)
    for key, value in summary.items():
        print(f"{key + ':':<26}{value}")
    print("=" * 60 + "\n")
