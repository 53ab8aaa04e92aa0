"""Sign-in submission endpoint.

``POST /api/login`` validates the form payload, stamps it with the server
time and appends it to the ledger.  Only this module decides how append
outcomes look over HTTP:

    committed            -> 201 {"ok": true, "message": "Submission saved"}
    AppendCancelledError -> 504 generic message
    AppendFailedError    -> 500 generic message

Store diagnostics are logged for operators and never returned to the
submitter.  Validation failures are turned into 400 responses by the
app-level handler in :mod:`submission_ledger.api.server`, before this
handler runs.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, HTTPException

from submission_ledger.api.models import LoginRequest, LoginResponse
from submission_ledger.ledger import (
    AppendCancelledError,
    AppendFailedError,
    AppendService,
    CorruptLedgerError,
    Submission,
    format_timestamp,
)

logger = logging.getLogger(__name__)

SAVED_MESSAGE = "Submission saved"
FAILED_MESSAGE = "Failed to save submission"
TIMEOUT_MESSAGE = "Submission timed out"


def router(
    service: AppendService,
    ledger_path: str,
    *,
    clock: Callable[[], datetime],
    timeout: float | None = None,
) -> APIRouter:
    """Build the submissions router bound to one ledger file."""
    api = APIRouter()

    @api.post("/api/login", status_code=201, response_model=LoginResponse)
    async def submit(request: LoginRequest):
        """Append one sign-in record to the ledger."""
        record = Submission(
            name=request.name,
            phone=request.phone,
            linkedin=request.linkedin,
            timestamp=format_timestamp(clock()),
        )

        try:
            result = await service.append(ledger_path, record, timeout=timeout)
        except AppendCancelledError as exc:
            logger.error("Submission append timed out: %s", exc)
            raise HTTPException(status_code=504, detail=TIMEOUT_MESSAGE) from exc
        except CorruptLedgerError as exc:
            logger.critical(
                "Ledger %r is corrupt and needs manual repair: %s", ledger_path, exc.cause
            )
            raise HTTPException(status_code=500, detail=FAILED_MESSAGE) from exc
        except AppendFailedError as exc:
            logger.error("Submission append failed: %s (cause: %s)", exc, exc.cause)
            raise HTTPException(status_code=500, detail=FAILED_MESSAGE) from exc

        logger.debug("Submission stored at position %d", result.position)
        return LoginResponse(ok=True, message=SAVED_MESSAGE)

    return api
