"""Versioned blob store interface and the in-memory implementation.

A versioned blob store holds files that each carry an opaque version token.
Reads return the content together with its token; writes are accepted only
when the caller presents the token the store currently holds for that path.
This is the only serialization point of the whole append protocol: there is
no local lock anywhere above it.

Contract
--------
``fetch(path)``
    Returns a :class:`~submission_ledger.ledger.types.Blob`, or ``None`` when
    the file does not exist.  Raises ``TransientStoreError`` for retryable
    failures and ``FatalStoreError`` for everything else, including any
    response that cannot be parsed.  Never returns an empty blob in place of
    an error.

``commit(path, content, expected_version, message)``
    Writes ``content`` and returns the new version token.  ``expected_version
    = None`` means "create; the file must not exist yet".  Raises
    ``VersionConflictError`` when the token does not match and
    ``FatalStoreError`` for any other failure.  Implementations never retry.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any, Protocol

from submission_ledger.ledger.types import Blob, VersionConflictError

if TYPE_CHECKING:
    from submission_ledger.config import AppConfig
    from submission_ledger.ledger.github import GitHubContentsStore


class VersionedBlobStore(Protocol):
    """Structural interface implemented by every store backend."""

    async def fetch(self, path: str) -> Blob | None: ...

    async def commit(
        self,
        path: str,
        content: bytes,
        expected_version: str | None,
        message: str,
    ) -> str: ...


class InMemoryBlobStore:
    """Process-local store keyed by path, with compare-and-set commits.

    Used by the ``memory`` backend for local development and as the fake
    store in tests.  There is no ``await`` between the version check and the
    write, so each compare-and-set is atomic on the event loop, mirroring the
    guarantee the remote store provides.

    Attributes:
        commit_log: ``(path, message)`` for every successful commit, in order.
    """

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}
        self._revision = 0
        self.commit_log: list[tuple[str, str]] = []
        for path, content in (initial or {}).items():
            self._blobs[path] = (content, self._next_version(content))

    async def __aenter__(self) -> InMemoryBlobStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        return None

    async def fetch(self, path: str) -> Blob | None:
        entry = self._blobs.get(path)
        if entry is None:
            return None
        content, version = entry
        return Blob(path=path, content=content, version=version)

    async def commit(
        self,
        path: str,
        content: bytes,
        expected_version: str | None,
        message: str,
    ) -> str:
        current = self._blobs.get(path)
        current_version = current[1] if current is not None else None
        if current_version != expected_version:
            raise VersionConflictError(
                f"Version mismatch for {path!r}: expected {expected_version!r}, "
                f"store has {current_version!r}."
            )
        version = self._next_version(content)
        self._blobs[path] = (content, version)
        self.commit_log.append((path, message))
        return version

    def snapshot(self, path: str) -> Blob | None:
        """Synchronous read for diagnostics and tests."""
        entry = self._blobs.get(path)
        if entry is None:
            return None
        return Blob(path=path, content=entry[0], version=entry[1])

    def _next_version(self, content: bytes) -> str:
        # Revision counter keeps tokens unique even when content repeats.
        self._revision += 1
        digest = hashlib.sha1(usedforsecurity=False)
        digest.update(str(self._revision).encode("ascii"))
        digest.update(b"\0")
        digest.update(content)
        return digest.hexdigest()


def build_store(cfg: AppConfig) -> GitHubContentsStore | InMemoryBlobStore:
    """Create the store selected by ``cfg.store.backend``.

    The returned object is an async context manager; enter it before use.
    """
    if cfg.store.backend == "memory":
        return InMemoryBlobStore()
    from submission_ledger.ledger.github import GitHubContentsStore

    return GitHubContentsStore(cfg.github)
