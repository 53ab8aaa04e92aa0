"""Submission Ledger — append-only sign-in ledger backed by a GitHub file.

Accepts small identity records (name, phone, optional LinkedIn URL) from a
public form and appends them to a single JSON array stored in a GitHub
repository.  Writes use the contents API's blob SHA as an optimistic
concurrency token, so concurrent submissions never overwrite each other.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("submission-ledger")
except PackageNotFoundError:
    __version__ = "0.1.0"
