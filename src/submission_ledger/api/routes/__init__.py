"""
Route registration entry point for the FastAPI application.

Keeps the public ``register_routes`` API in one place while the
implementation lives in focused router modules.
"""

from collections.abc import Callable
from datetime import datetime

from fastapi import FastAPI

from submission_ledger.api.routes import health, submissions
from submission_ledger.config import AppConfig
from submission_ledger.ledger import AppendService


def register_routes(
    app: FastAPI,
    service: AppendService,
    cfg: AppConfig,
    *,
    clock: Callable[[], datetime],
) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(
        submissions.router(
            service,
            cfg.github.file_path,
            clock=clock,
            timeout=cfg.append.request_timeout_seconds or None,
        )
    )
