"""JSON codec for the submission ledger file.

Stored format
-------------
The ledger is a single pretty-printed JSON array, one object per record::

    [
      {
        "name": "Ada Lovelace",
        "phone": "555-0100",
        "timestamp": "2026-02-27T14:23:01Z"
      }
    ]

Keys are written in the fixed order ``name``, ``phone``, ``linkedin``,
``timestamp``.  ``linkedin`` is present only when non-empty.  The output is
deterministic, so identical ledgers always encode to identical bytes and
produce clean diffs in the repository history.

Decoding is strict.  Anything this codec would not have produced raises
:exc:`~submission_ledger.ledger.types.LedgerDecodeError`; the caller decides
what a bad ledger means.  Unknown keys are rejected.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from submission_ledger.ledger.types import LedgerDecodeError, Submission

_REQUIRED_KEYS = ("name", "phone", "timestamp")
_ALLOWED_KEYS = frozenset((*_REQUIRED_KEYS, "linkedin"))
_INDENT = 2


class RecordCodec:
    """Encode and decode ledgers to and from the stored byte format."""

    def encode(self, records: Iterable[Submission]) -> bytes:
        """Serialize ``records`` to UTF-8 JSON bytes."""
        payload = [_record_to_dict(record) for record in records]
        return json.dumps(payload, ensure_ascii=False, indent=_INDENT).encode("utf-8")

    def decode(self, content: bytes) -> tuple[Submission, ...]:
        """Parse stored bytes back into records.

        Raises:
            LedgerDecodeError: If the bytes are not UTF-8, not JSON, not an
                array, or any entry is not a well-formed record.
        """
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise LedgerDecodeError(f"Ledger is not valid UTF-8: {exc}") from exc

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LedgerDecodeError(f"Ledger is not valid JSON: {exc}") from exc

        if not isinstance(payload, list):
            raise LedgerDecodeError(
                f"Ledger must be a JSON array, got {type(payload).__name__}."
            )

        return tuple(_record_from_dict(index, item) for index, item in enumerate(payload))


def _record_to_dict(record: Submission) -> dict[str, str]:
    data = {"name": record.name, "phone": record.phone}
    if record.linkedin:
        data["linkedin"] = record.linkedin
    data["timestamp"] = record.timestamp
    return data


def _record_from_dict(index: int, item: Any) -> Submission:
    if not isinstance(item, dict):
        raise LedgerDecodeError(f"Entry {index} is not an object.")

    unknown = set(item) - _ALLOWED_KEYS
    if unknown:
        raise LedgerDecodeError(f"Entry {index} has unknown keys: {sorted(unknown)}.")

    for key in _REQUIRED_KEYS:
        if not isinstance(item.get(key), str):
            raise LedgerDecodeError(f"Entry {index} is missing string field {key!r}.")

    linkedin = item.get("linkedin", "")
    if not isinstance(linkedin, str):
        raise LedgerDecodeError(f"Entry {index} has a non-string 'linkedin' field.")

    return Submission(
        name=item["name"],
        phone=item["phone"],
        timestamp=item["timestamp"],
        linkedin=linkedin,
    )
