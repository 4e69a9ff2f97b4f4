"""Retention of jobs that exhausted their retries.

Failed jobs are pushed as JSON onto a capped Redis list, newest first,
for manual inspection and replay.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import redis
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def build_entry(
    job: dict[str, Any],
    error: BaseException | str,
    attempts: int,
    task_id: str | None = None,
) -> dict[str, Any]:
    if isinstance(error, BaseException):
        error_text = f"{error.__class__.__name__}: {error}"
    else:
        error_text = error
    return {
        "task_id": task_id,
        "integration_id": job.get("integration_id"),
        "platform": job.get("platform"),
        "job": job,
        "error": error_text,
        "attempts": attempts,
        "failed_at": datetime.now(timezone.utc).isoformat(),
    }


def push_dead_letter(
    client: redis.Redis,
    key: str,
    entry: dict[str, Any],
    max_entries: int,
) -> None:
    """Prepend an entry and trim the list to ``max_entries``."""
    pipe = client.pipeline()
    pipe.lpush(key, json.dumps(entry, default=str))
    pipe.ltrim(key, 0, max_entries - 1)
    pipe.execute()


async def list_dead_letters(
    client: aioredis.Redis,
    key: str,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Return up to ``limit`` retained entries, newest first.

    Entries that are not valid JSON are skipped with a warning.
    """
    raw_entries = await client.lrange(key, 0, max(limit, 1) - 1)
    entries: list[dict[str, Any]] = []
    for raw in raw_entries:
        try:
            entries.append(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Skipping unreadable dead-letter entry in %s", key)
    return entries
