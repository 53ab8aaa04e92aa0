"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` liveness check.  Neither touches the ledger store.
"""

from fastapi import APIRouter

from submission_ledger import __version__
from submission_ledger.api.models import HealthResponse

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "Submission Ledger API", "version": __version__}


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
