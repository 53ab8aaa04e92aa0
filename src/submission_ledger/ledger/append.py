"""Optimistic-concurrency append protocol for the submission ledger.

:class:`AppendService` performs read-modify-write against a single shared
file in a versioned blob store.  There is no local lock: any number of
appends may run concurrently against the same path, and the store's
conditional write is the only serialization point.

State machine
-------------
Each attempt runs three steps::

    Fetch ──► Compose ──► CommitAttempt ──► success
      ▲  │                    │
      │  └─ transient ─┐      └─ conflict ─┐
      └──── backoff ◄──┴───────────────────┘

1. **Fetch** reads the current blob.  A missing file bootstraps an empty
   ledger with no base version.  Undecodable content aborts the append with
   :exc:`CorruptLedgerError`; it is never reset to empty.  Transient store
   failures are retried against ``max_transient_retries``; fatal ones abort.
2. **Compose** appends the new record to the decoded ledger and encodes it.
3. **CommitAttempt** writes conditioned on the version read in step 1.  A
   version conflict always restarts at Fetch so records committed by other
   writers in the meantime are preserved.

After ``max_attempts`` conflicting commits the append fails with
:exc:`AppendFailedError` and the stored blob is exactly as this call found
it.

Cancellation
------------
``append(..., timeout=...)`` bounds the whole operation, including backoff
sleeps.  When it expires the in-flight request or sleep is abandoned and
:exc:`AppendCancelledError` is raised; it is not counted against any retry
budget.  Cancelling the surrounding task raises ``asyncio.CancelledError``
as usual.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from submission_ledger.config import AppendSettings
from submission_ledger.ledger.codec import RecordCodec
from submission_ledger.ledger.store import VersionedBlobStore
from submission_ledger.ledger.types import (
    AppendCancelledError,
    AppendFailedError,
    AppendResult,
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

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_MAX_TRANSIENT_RETRIES = 3
DEFAULT_COMMIT_MESSAGE = "chore: append login submission"

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class ExponentialBackoff:
    """Capped exponential backoff with optional full jitter.

    ``delay(n)`` for the n-th retry (1-based) is
    ``min(max_delay, base_delay * factor ** (n - 1))``.  With ``jitter`` the
    result is drawn uniformly from ``[0, capped]``.
    """

    base_delay: float = 0.2
    factor: float = 2.0
    max_delay: float = 5.0
    jitter: bool = True
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def delay(self, retry: int) -> float:
        capped = min(self.max_delay, self.base_delay * self.factor ** max(retry - 1, 0))
        if self.jitter:
            return self.rng.uniform(0.0, capped)
        return capped


class AppendService:
    """Append single records to a ledger file in a :class:`VersionedBlobStore`.

    Holds no per-request state, so one instance can serve every request
    concurrently.

    Args:
        store: Blob store holding the ledger file.
        codec: Ledger encoder/decoder.
        backoff: Delay policy between retries.
        max_attempts: Commit attempts before giving up on version conflicts.
        max_transient_retries: Extra fetches allowed after transient store
            failures.  Budgeted separately from ``max_attempts``.
        sleep: Awaitable used for backoff; tests pass a recorder.
        clock: Source of the time embedded in commit messages.
        commit_message: Commit message prefix.
    """

    def __init__(
        self,
        store: VersionedBlobStore,
        *,
        codec: RecordCodec | None = None,
        backoff: ExponentialBackoff | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_transient_retries: int = DEFAULT_MAX_TRANSIENT_RETRIES,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if max_transient_retries < 0:
            raise ValueError("max_transient_retries must not be negative")
        self._store = store
        self._codec = codec or RecordCodec()
        self._backoff = backoff or ExponentialBackoff()
        self._max_attempts = max_attempts
        self._max_transient_retries = max_transient_retries
        self._sleep = sleep
        self._clock = clock
        self._commit_message = commit_message

    @classmethod
    def from_settings(
        cls,
        store: VersionedBlobStore,
        settings: AppendSettings,
        **overrides,
    ) -> AppendService:
        """Build a service from the ``[append]`` configuration section."""
        kwargs = {
            "backoff": ExponentialBackoff(
                base_delay=settings.base_delay_seconds,
                max_delay=settings.max_delay_seconds,
                jitter=settings.jitter,
            ),
            "max_attempts": settings.max_attempts,
            "max_transient_retries": settings.max_transient_retries,
            "commit_message": settings.commit_message,
        }
        kwargs.update(overrides)
        return cls(store, **kwargs)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def append(
        self,
        path: str,
        record: Submission,
        *,
        timeout: float | None = None,
    ) -> AppendResult:
        """Append ``record`` to the ledger at ``path``.

        Args:
            path: Ledger file path in the store.
            record: The record to append, timestamp already assigned.
            timeout: Deadline in seconds for the whole operation, or ``None``.

        Returns:
            The new version token and the record's position in the ledger.

        Raises:
            CorruptLedgerError: Existing content could not be decoded.
            AppendFailedError: Retries exhausted or a fatal store error.
            AppendCancelledError: ``timeout`` expired first.
        """
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await self._run(path, record)
        except TimeoutError as exc:
            if not deadline.expired():
                raise
            logger.warning("ledger: append to %r cancelled after %.1fs", path, timeout)
            raise AppendCancelledError(
                f"Append to {path!r} did not finish within {timeout}s"
            ) from exc

    async def _run(self, path: str, record: Submission) -> AppendResult:
        commit_attempts = 0
        transient_retries = 0

        while True:
            # ── Fetch ─────────────────────────────────────────────────────────
            try:
                blob = await self._store.fetch(path)
            except TransientStoreError as exc:
                if transient_retries >= self._max_transient_retries:
                    logger.error(
                        "ledger: store unavailable for %r after %d retries: %s",
                        path,
                        transient_retries,
                        exc,
                    )
                    raise AppendFailedError(
                        "Store unavailable", path=path, attempts=commit_attempts, cause=exc
                    ) from exc
                transient_retries += 1
                await self._back_off(transient_retries, "transient fetch failure", path, exc)
                continue
            except FatalStoreError as exc:
                logger.error("ledger: fetch of %r failed: %s", path, exc)
                raise AppendFailedError(
                    "Fetch failed", path=path, attempts=commit_attempts, cause=exc
                ) from exc

            if blob is None:
                logger.debug("ledger: %r not found; bootstrapping empty ledger", path)
                records: tuple[Submission, ...] = ()
                base_version = None
            else:
                try:
                    records = self._codec.decode(blob.content)
                except LedgerDecodeError as exc:
                    logger.error(
                        "ledger: %r at version %s is corrupt, append aborted: %s",
                        path,
                        blob.version,
                        exc,
                    )
                    raise CorruptLedgerError(
                        "Existing ledger content is corrupt",
                        path=path,
                        attempts=commit_attempts,
                        cause=exc,
                    ) from exc
                base_version = blob.version

            # ── Compose ───────────────────────────────────────────────────────
            content = self._codec.encode((*records, record))

            # ── CommitAttempt ─────────────────────────────────────────────────
            commit_attempts += 1
            logger.debug(
                "ledger: commit attempt %d to %r with %d record(s) at version %s",
                commit_attempts,
                path,
                len(records) + 1,
                base_version,
            )
            try:
                version = await self._store.commit(path, content, base_version, self._message())
            except VersionConflictError as exc:
                if commit_attempts >= self._max_attempts:
                    logger.error(
                        "ledger: giving up on %r after %d conflicting commits",
                        path,
                        commit_attempts,
                    )
                    raise AppendFailedError(
                        "Version conflict retries exhausted",
                        path=path,
                        attempts=commit_attempts,
                        cause=exc,
                    ) from exc
                await self._back_off(commit_attempts, "version conflict", path, exc)
                continue
            except StoreError as exc:
                logger.error("ledger: commit to %r failed: %s", path, exc)
                raise AppendFailedError(
                    "Commit failed", path=path, attempts=commit_attempts, cause=exc
                ) from exc

            logger.info(
                "ledger: appended record #%d to %r (version %s, %d attempt(s))",
                len(records),
                path,
                version,
                commit_attempts,
            )
            return AppendResult(version=version, position=len(records), attempts=commit_attempts)

    async def _back_off(self, retry: int, reason: str, path: str, exc: Exception) -> None:
        delay = self._backoff.delay(retry)
        logger.warning(
            "ledger: %s on %r (retry %d), backing off %.3fs: %s", reason, path, retry, delay, exc
        )
        await self._sleep(delay)

    def _message(self) -> str:
        return f"{self._commit_message} ({format_timestamp(self._clock())})"
