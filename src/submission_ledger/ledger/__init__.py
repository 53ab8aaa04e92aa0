"""Ledger package — append-only submission ledger in a versioned blob store.

The ledger is a single JSON array file.  It lives in a remote store that
versions every write (a GitHub repository in production) and only accepts
writes conditioned on the version the writer last read.

Public surface
--------------
- :class:`AppendService`        — the fetch/compose/commit append protocol.
- :class:`ExponentialBackoff`   — delay policy between retries.
- :class:`RecordCodec`          — ledger <-> bytes.
- :class:`VersionedBlobStore`   — store interface.
- :class:`InMemoryBlobStore`    — process-local store for development and tests.
- :class:`GitHubContentsStore`  — GitHub contents API store.
- :func:`build_store`           — store selected by configuration.
- :class:`Submission`, :class:`Blob`, :class:`AppendResult` — value types.
- Exceptions: :exc:`AppendFailedError`, :exc:`CorruptLedgerError`,
  :exc:`AppendCancelledError`, :exc:`StoreError` and its subclasses,
  :exc:`LedgerDecodeError`.

Usage example
-------------
::

    from submission_ledger.ledger import AppendService, AppendFailedError, build_store

    async with build_store(cfg) as store:
        service = AppendService.from_settings(store, cfg.append)
        try:
            result = await service.append(cfg.github.file_path, record, timeout=20)
        except AppendFailedError:
            logger.error("Submission was not saved.")

Design notes
------------
- A decode failure on existing content aborts the append (fail closed).  An
  operator must repair the file; nothing resets it to an empty ledger.
- Version conflicts always re-read before recomposing.
- No state is shared between concurrent appends; the version token lives
  only in the store.
"""

from submission_ledger.ledger.append import AppendService, ExponentialBackoff
from submission_ledger.ledger.codec import RecordCodec
from submission_ledger.ledger.github import GitHubContentsStore
from submission_ledger.ledger.store import InMemoryBlobStore, VersionedBlobStore, build_store
from submission_ledger.ledger.types import (
    AppendCancelledError,
    AppendError,
    AppendFailedError,
    AppendResult,
    Blob,
    CorruptLedgerError,
    FatalStoreError,
    LedgerDecodeError,
    StoreError,
    Submission,
    TransientStoreError,
    VersionConflictError,
    format_timestamp,
    utc_now,
)

__all__ = [
    "AppendCancelledError",
    "AppendError",
    "AppendFailedError",
    "AppendResult",
    "AppendService",
    "Blob",
    "CorruptLedgerError",
    "ExponentialBackoff",
    "FatalStoreError",
    "GitHubContentsStore",
    "InMemoryBlobStore",
    "LedgerDecodeError",
    "RecordCodec",
    "StoreError",
    "Submission",
    "TransientStoreError",
    "VersionConflictError",
    "VersionedBlobStore",
    "build_store",
    "format_timestamp",
    "utc_now",
]
