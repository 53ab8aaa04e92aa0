"""
GitHub contents API implementation of the versioned blob store.

The ledger file lives in a GitHub repository.  The REST "contents" endpoint
gives exactly the primitives the append protocol needs:

    GET  /repos/{repo}/contents/{path}?ref={branch}
        -> {"type": "file", "encoding": "base64", "content": "...", "sha": "..."}
    PUT  /repos/{repo}/contents/{path}
        <- {"message", "content" (base64), "branch", "sha"?, "committer"}
        -> {"content": {"sha": "..."}, "commit": {...}}

The blob ``sha`` is the version token.  A ``PUT`` carrying a stale ``sha``
is rejected with ``409 Conflict``; a ``PUT`` without ``sha`` against an
existing file is rejected with ``422`` and a message about the missing
``sha``.  Both map to :exc:`VersionConflictError`.

Files larger than 1 MB come back with ``encoding: "none"`` and no content.
For those the bytes are fetched a second time with the raw media type and
checked against the envelope sha (the git blob hash), so content and version
token always belong together.

The client must be used as an async context manager so the underlying
connection pool is closed:

    async with GitHubContentsStore(settings) as store:
        blob = await store.fetch("data/submissions.json")

Status mapping
--------------
fetch:   200 -> Blob, 404 -> None, 429/5xx/transport error -> Transient,
         403 with an exhausted rate limit -> Transient, anything else or an
         unparseable body -> Fatal.
commit:  200/201 -> new sha, 409 or 422-about-sha -> Conflict, anything else
         -> Fatal.  Transport errors on commit are Fatal as well: the write
         may have landed, and only a fresh fetch can tell.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from submission_ledger.config import GitHubSettings
from submission_ledger.ledger.types import (
    Blob,
    FatalStoreError,
    TransientStoreError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
RAW_MEDIA_TYPE = "application/vnd.github.raw"

# Longest response excerpt carried in exceptions and logs.
_DETAIL_LIMIT = 500


@dataclass
class GitHubContentsStore:
    """
    Async client for one repository branch of the GitHub contents API.

    Attributes:
        settings: Repository, branch, token and committer identity.
        transport: Optional httpx transport, for tests and proxies.
    """

    settings: GitHubSettings
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    _http_client: httpx.AsyncClient | None = field(default=None, repr=False)

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> GitHubContentsStore:
        """Create the underlying httpx.AsyncClient with auth headers and timeout."""
        self._http_client = httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout_seconds,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.settings.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": self.settings.user_agent,
            },
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the underlying HTTP connection pool."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """
        Get the HTTP client, ensuring it's been initialized.

        Raises:
            RuntimeError: If accessed outside of async context manager.
        """
        if self._http_client is None:
            raise RuntimeError(
                "GitHubContentsStore must be used as an async context manager. "
                "Use 'async with GitHubContentsStore(settings) as store:'"
            )
        return self._http_client

    # -------------------------------------------------------------------------
    # VersionedBlobStore
    # -------------------------------------------------------------------------

    async def fetch(self, path: str) -> Blob | None:
        """
        Read ``path`` on the configured branch.

        Returns:
            The decoded blob and its sha, or ``None`` if the file does not
            exist.

        Raises:
            TransientStoreError: Network failure, timeout, 429, 5xx, or an
                exhausted rate limit.
            FatalStoreError: Any other status, or a body that is not a
                base64 file envelope.
        """
        try:
            response = await self.http_client.get(
                self._contents_url(path),
                params={"ref": self.settings.branch},
            )
        except httpx.TransportError as exc:
            raise TransientStoreError(f"GitHub fetch of {path!r} failed: {exc!r}") from exc

        status = response.status_code
        logger.debug("github: GET %s -> %s", path, status)

        if status == 404:
            return None
        if status == 429 or status >= 500 or _rate_limited(response):
            raise TransientStoreError(
                f"GitHub fetch of {path!r} returned HTTP {status}: {_excerpt(response)}"
            )
        if status != 200:
            raise FatalStoreError(
                f"GitHub fetch of {path!r} rejected",
                status_code=status,
                detail=_excerpt(response),
            )

        content, sha = _parse_file_envelope(path, response)
        if content is None:
            content = await self._fetch_raw(path, sha)
        return Blob(path=path, content=content, version=sha)

    async def commit(
        self,
        path: str,
        content: bytes,
        expected_version: str | None,
        message: str,
    ) -> str:
        """
        Write ``content`` to ``path`` if its sha still equals ``expected_version``.

        Args:
            path: Repository-relative file path.
            content: New file bytes.
            expected_version: The sha read before composing ``content``, or
                ``None`` to create a file that must not exist yet.
            message: Commit message.

        Returns:
            The sha of the newly written blob.

        Raises:
            VersionConflictError: The file changed (or appeared) since it was read.
            FatalStoreError: Any other failure, including transport errors.
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.settings.branch,
            "committer": {
                "name": self.settings.committer_name,
                "email": self.settings.committer_email,
            },
        }
        if expected_version is not None:
            body["sha"] = expected_version

        try:
            response = await self.http_client.put(self._contents_url(path), json=body)
        except httpx.TransportError as exc:
            raise FatalStoreError(
                f"GitHub commit to {path!r} did not complete; outcome unknown",
                detail=repr(exc),
            ) from exc

        status = response.status_code
        logger.debug("github: PUT %s (sha=%s) -> %s", path, expected_version, status)

        if status == 409 or (status == 422 and _mentions_sha(response)):
            raise VersionConflictError(
                f"GitHub rejected commit to {path!r} at sha {expected_version!r}: "
                f"{_excerpt(response)}"
            )
        if status not in (200, 201):
            raise FatalStoreError(
                f"GitHub commit to {path!r} rejected",
                status_code=status,
                detail=_excerpt(response),
            )

        try:
            data = response.json()
            new_sha = data["content"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise FatalStoreError(
                f"GitHub commit to {path!r} returned an unexpected body",
                status_code=status,
                detail=_excerpt(response),
            ) from exc
        if not isinstance(new_sha, str) or not new_sha:
            raise FatalStoreError(
                f"GitHub commit to {path!r} returned no content sha",
                status_code=status,
                detail=_excerpt(response),
            )
        return new_sha

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _fetch_raw(self, path: str, sha: str) -> bytes:
        """Read the raw bytes of a file too large for the JSON envelope."""
        try:
            response = await self.http_client.get(
                self._contents_url(path),
                params={"ref": self.settings.branch},
                headers={"Accept": RAW_MEDIA_TYPE},
            )
        except httpx.TransportError as exc:
            raise TransientStoreError(f"GitHub raw fetch of {path!r} failed: {exc!r}") from exc

        status = response.status_code
        logger.debug("github: GET %s (raw) -> %s", path, status)

        if status == 404 or status == 429 or status >= 500 or _rate_limited(response):
            raise TransientStoreError(
                f"GitHub raw fetch of {path!r} returned HTTP {status}: {_excerpt(response)}"
            )
        if status != 200:
            raise FatalStoreError(
                f"GitHub raw fetch of {path!r} rejected",
                status_code=status,
                detail=_excerpt(response),
            )

        content = response.content
        if _git_blob_sha(content) != sha:
            # The file changed between the two reads.
            raise TransientStoreError(f"GitHub raw content of {path!r} does not match sha {sha}")
        return content

    def _contents_url(self, path: str) -> str:
        repo = self.settings.repo.strip("/")
        return f"/repos/{repo}/contents/{quote(path.lstrip('/'), safe='/')}"


def _excerpt(response: httpx.Response) -> str:
    text = response.text
    if len(text) > _DETAIL_LIMIT:
        return text[:_DETAIL_LIMIT] + "..."
    return text


def _rate_limited(response: httpx.Response) -> bool:
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


def _mentions_sha(response: httpx.Response) -> bool:
    try:
        data = response.json()
    except ValueError:
        return False
    message = data.get("message", "") if isinstance(data, dict) else ""
    return isinstance(message, str) and "sha" in message.lower()


def _git_blob_sha(content: bytes) -> str:
    digest = hashlib.sha1(usedforsecurity=False)
    digest.update(b"blob %d\0" % len(content))
    digest.update(content)
    return digest.hexdigest()


def _parse_file_envelope(path: str, response: httpx.Response) -> tuple[bytes | None, str]:
    """Extract ``(content, sha)`` from a contents API file response.

    ``content`` is ``None`` for files served without inline content (over 1 MB).
    """
    try:
        data = response.json()
    except ValueError as exc:
        raise FatalStoreError(
            f"GitHub fetch of {path!r} returned non-JSON",
            status_code=response.status_code,
            detail=_excerpt(response),
        ) from exc

    if not isinstance(data, dict):
        raise FatalStoreError(
            f"GitHub fetch of {path!r} did not return a file object",
            status_code=response.status_code,
            detail=f"got {type(data).__name__}; is the path a directory?",
        )

    entry_type = data.get("type", "file")
    encoding = data.get("encoding")
    content = data.get("content")
    sha = data.get("sha")

    if entry_type != "file":
        raise FatalStoreError(
            f"GitHub path {path!r} is a {entry_type}, not a file",
            status_code=response.status_code,
        )
    if not isinstance(sha, str) or not sha:
        raise FatalStoreError(
            f"GitHub fetch of {path!r} returned no sha",
            status_code=response.status_code,
            detail=_excerpt(response),
        )
    if encoding == "none":
        return None, sha
    if encoding != "base64" or not isinstance(content, str):
        raise FatalStoreError(
            f"GitHub fetch of {path!r} returned unexpected encoding {encoding!r}",
            status_code=response.status_code,
        )

    try:
        decoded = base64.b64decode(content.replace("\n", ""), validate=True)
    except binascii.Error as exc:
        raise FatalStoreError(
            f"GitHub fetch of {path!r} returned invalid base64",
            status_code=response.status_code,
            detail=str(exc),
        ) from exc
    return decoded, sha
