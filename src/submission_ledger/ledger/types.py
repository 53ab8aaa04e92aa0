"""Immutable value types and the exception hierarchy for the ledger package.

These types flow between the store clients, the codec and the append
service.  Store and append outcomes are expressed the Python way: success
is a return value, every failure mode is a typed exception that callers can
catch at the granularity they need.

Exception hierarchy
-------------------
::

    StoreError                      remote store failures
    ├── TransientStoreError         network blip, timeout, 429, 5xx; retryable
    ├── FatalStoreError             auth, permission, malformed envelope; never retried
    └── VersionConflictError        conditional write rejected; retryable after re-read
    LedgerDecodeError               stored bytes are not a well-formed ledger
    AppendError                     terminal outcomes of AppendService.append
    ├── AppendFailedError
    │   └── CorruptLedgerError
    └── AppendCancelledError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

# ── Timestamp format ──────────────────────────────────────────────────────────
# RFC 3339, UTC, second precision: ``2026-02-27T14:23:01Z``.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` in UTC using :data:`TIMESTAMP_FORMAT`."""
    return moment.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


# ── Value types ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Submission:
    """One sign-in record as persisted in the ledger.

    Attributes:
        name:      Submitter name, trimmed, never empty.
        phone:     Submitter phone number, trimmed, never empty.  Not
                   format-validated.
        timestamp: Server-assigned UTC time in :data:`TIMESTAMP_FORMAT`.
        linkedin:  Optional profile link, trimmed.  The empty string means
                   "not provided" and is omitted from the stored JSON.
    """

    name: str
    phone: str
    timestamp: str
    linkedin: str = ""


@dataclass(frozen=True)
class Blob:
    """A stored file and the version token it was read at.

    Attributes:
        path:    Repository-relative path of the file.
        content: Raw file bytes (already transport-decoded).
        version: Opaque version token.  ``None`` only for content that has
                 never been committed.
    """

    path: str
    content: bytes
    version: str | None


@dataclass(frozen=True)
class AppendResult:
    """Successful outcome of :meth:`AppendService.append`.

    Attributes:
        version:  Version token the store assigned to the new content.
        position: Zero-based index of the appended record in the ledger.
        attempts: Number of commit attempts it took (1 when uncontended).
    """

    version: str
    position: int
    attempts: int


# ── Store errors ──────────────────────────────────────────────────────────────


class StoreError(RuntimeError):
    """Base exception for versioned blob store failures."""


class TransientStoreError(StoreError):
    """The store could not be reached or answered with a retryable status."""


class FatalStoreError(StoreError):
    """The store rejected the request or answered with something unparseable.

    Args:
        message:     Short description of the failed operation.
        status_code: HTTP status of the response, ``0`` when there was none.
        detail:      Diagnostic text (response body excerpt, parse error).
                     For operator logs only; never returned to submitters.
    """

    def __init__(self, message: str, *, status_code: int = 0, detail: str = "") -> None:
        text = message
        if status_code:
            text = f"{text} (HTTP {status_code})"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)
        self.status_code = status_code
        self.detail = detail


class VersionConflictError(StoreError):
    """A conditional write was rejected because the version token is stale."""


# ── Codec errors ──────────────────────────────────────────────────────────────


class LedgerDecodeError(ValueError):
    """Stored content does not decode to a well-formed ledger."""


# ── Append outcomes ───────────────────────────────────────────────────────────


class AppendError(RuntimeError):
    """Base exception for terminal :meth:`AppendService.append` failures."""


class AppendFailedError(AppendError):
    """The record was not appended.

    The stored ledger is unchanged by the call, except when ``cause`` is a
    :exc:`FatalStoreError` raised by a commit whose outcome is unknown
    (connection dropped mid-request).

    Attributes:
        path:     Ledger path the append targeted.
        attempts: Commit attempts made before giving up.
        cause:    Underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str,
        attempts: int,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(f"{message} [path={path!r}, attempts={attempts}]")
        self.path = path
        self.attempts = attempts
        self.cause = cause


class CorruptLedgerError(AppendFailedError):
    """Existing ledger content could not be decoded; the append was aborted.

    The blob must be reconciled by an operator.  It is never reset to an
    empty ledger automatically.
    """


class AppendCancelledError(AppendError):
    """The append was aborted by its deadline before reaching an outcome."""
