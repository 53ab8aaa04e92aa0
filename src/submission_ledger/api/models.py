"""
Pydantic models for API requests and responses.

Request models normalize their input: surrounding whitespace is trimmed and
required fields must still be non-empty afterwards.  Unknown fields are
rejected so a typo in a client never silently drops data.
"""

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class LoginRequest(BaseModel):
    """
    Sign-in form submission.

    Attributes:
        name: Submitter name (required, trimmed, non-empty)
        phone: Phone number (required, trimmed, non-empty, not format-checked)
        linkedin: Optional profile URL (trimmed, not format-checked)
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    phone: str
    linkedin: str = ""

    @field_validator("name", "phone")
    @classmethod
    def _required_text(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("linkedin")
    @classmethod
    def _optional_text(cls, value: str) -> str:
        return value.strip()


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class LoginResponse(BaseModel):
    """Acknowledgement returned once the submission is committed."""

    ok: bool
    message: str


class HealthResponse(BaseModel):
    """Liveness check payload."""

    status: str
