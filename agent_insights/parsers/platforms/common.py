"""Helpers shared by the per-platform log parsers."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from agent_insights.errors import ParseError
from agent_insights.models import TOKEN_MAX, AgentKind, FileMetadata, NormalizedRecord, TokenUsage


def read_log_text(file: FileMetadata) -> str:
    try:
        return Path(file.path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(file.path, str(exc)) from exc


def iter_json_lines(content: str) -> Iterator[dict[str, Any]]:
    """Yield each JSON object line, skipping blanks and undecodable lines."""
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if isinstance(entry, dict):
            yield entry


def token_count(payload: Any, key: str) -> int | None:
    """Return a non-negative integer field from a usage mapping, else None.

    Values above TOKEN_MAX are clamped so every counter fits an SQLite INTEGER.
    """
    if not isinstance(payload, dict):
        return None
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return min(value, TOKEN_MAX)


def first_string(payload: Any, *keys: str) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str):
            return value
    return None


def build_record(
    agent: AgentKind,
    file: FileMetadata,
    session_id: str | None,
    tokens: TokenUsage | None,
    tool_calls: list[str],
) -> NormalizedRecord:
    return NormalizedRecord(
        agent=agent,
        file_path=file.path,
        created_at=file.created_at,
        modified_at=file.modified_at,
        file_size=file.size,
        session_id=session_id,
        tokens=tokens,
        tool_calls=tool_calls,
    )
