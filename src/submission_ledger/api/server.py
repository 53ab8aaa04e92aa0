"""
FastAPI application factory for the submission ledger.

This module builds the ASGI application that fronts the ledger.  It sets up:
- CORS middleware for the public sign-in form
- A 400 handler for malformed or invalid submissions
- The blob store and the append service, wired from the immutable config
- All API route endpoints

The store is opened in the application lifespan, so its HTTP connection
pool lives exactly as long as the server.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from submission_ledger import __version__
from submission_ledger.api.routes import register_routes
from submission_ledger.config import AppConfig
from submission_ledger.ledger import AppendService, build_store, utc_now

logger = logging.getLogger(__name__)

# Fields whose absence or emptiness gets the short "required" message.
_REQUIRED_FIELDS = ("name", "phone")
# Error types meaning "absent" or "empty after trimming".
_REQUIRED_ERROR_TYPES = ("missing", "value_error")


def describe_validation_error(exc: RequestValidationError) -> str:
    """Turn pydantic/FastAPI validation errors into one readable sentence."""
    messages: list[str] = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field_name = ".".join(loc)
        error_type = error.get("type", "")

        if error_type == "json_invalid":
            message = "invalid json"
        elif error_type == "extra_forbidden":
            message = f"unknown field {field_name!r}"
        elif field_name in _REQUIRED_FIELDS and error_type in _REQUIRED_ERROR_TYPES:
            message = "name and phone are required"
        elif not field_name:
            message = "request body must be a JSON object"
        else:
            message = f"{field_name}: {error.get('msg', 'invalid value')}"

        if message not in messages:
            messages.append(message)
    return "; ".join(messages) or "invalid request"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject invalid submissions with 400 instead of FastAPI's default 422."""
    detail = describe_validation_error(exc)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(
    cfg: AppConfig,
    *,
    store=None,
    service: AppendService | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cfg: Validated configuration.
        store: Blob store to use instead of the one ``cfg`` selects.  Must be
            an async context manager; it is entered for the app's lifespan.
        service: Append service to use instead of one built from ``cfg``.
        clock: Source of submission timestamps.

    Returns:
        The configured application.
    """
    if store is None:
        store = build_store(cfg)
    if service is None:
        service = AppendService.from_settings(store, cfg.append)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with store:
            logger.info(
                "Ledger store ready (backend=%s, path=%s)",
                cfg.store.backend,
                cfg.github.file_path,
            )
            yield

    docs_enabled = cfg.docs_should_be_enabled
    app = FastAPI(
        title="Submission Ledger",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.security.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.state.config = cfg
    app.state.append_service = service

    register_routes(app, service, cfg, clock=clock)
    return app


def start_server(cfg: AppConfig, *, host: str | None = None, port: int | None = None) -> None:
    """Serve the application with uvicorn until interrupted."""
    app = create_app(cfg)
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    logger.info("Submission Ledger API listening on http://%s:%d", bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_config=None)
