"""Opaque cursors for paginating integrations and message history.

A cursor encodes the ``(created_at, id)`` pair of the boundary row, which
is also the sort key, so pages stay stable while new rows are appended.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    """Pagination metadata for JSON:API list responses."""

    has_next: bool
    has_prev: bool


class PaginationLinks(BaseModel):
    first: str
    next: str | None = None


def encode_cursor(created_at: datetime, id: str) -> str:
    """Encode a URL-safe cursor from the boundary row's created_at and id."""
    payload = json.dumps({"c": created_at.isoformat(), "i": id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Decode a cursor produced by ``encode_cursor``.

    Raises:
        ValueError: If the cursor is malformed or contains invalid data.
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        return datetime.fromisoformat(payload["c"]), payload["i"]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        msg = f"Invalid pagination cursor: {cursor}"
        raise ValueError(msg) from exc
