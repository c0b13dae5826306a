"""Parse Codex CLI rollout JSONL files into NormalizedRecord models."""
from __future__ import annotations

from typing import Any

from agent_insights.models import AgentKind, FileMetadata, NormalizedRecord, TokenUsage
from agent_insights.parsers.platforms.common import (
    build_record,
    first_string,
    iter_json_lines,
    read_log_text,
    token_count,
)

# total_token_usage field -> TokenUsage field
_SNAPSHOT_FIELDS = {
    "input_tokens": "input",
    "cached_input_tokens": "cached",
    "output_tokens": "output",
    "reasoning_output_tokens": "reasoning",
    "total_tokens": "total",
}


def _token_snapshot(payload: dict[str, Any]) -> dict[str, Any] | None:
    if payload.get("type") != "token_count":
        return None
    info = payload.get("info")
    if not isinstance(info, dict):
        return None
    snapshot = info.get("total_token_usage")
    return snapshot if isinstance(snapshot, dict) else None


def parse_session_file(file: FileMetadata) -> NormalizedRecord:
    """Parse a single Codex session log.

    ``token_count`` events carry the cumulative usage for the whole session, so
    each snapshot replaces the previous one and ``total_tokens`` is taken as
    reported.
    """
    content = read_log_text(file)

    session_id: str | None = None
    usage: dict[str, int] = {field: 0 for field in _SNAPSHOT_FIELDS.values()}
    tool_calls: list[str] = []

    for entry in iter_json_lines(content):
        event_type = entry.get("type")
        payload = entry.get("payload")
        if not isinstance(payload, dict):
            continue

        if event_type == "session_meta":
            if session_id is None:
                session_id = first_string(payload, "id")
        elif event_type == "event_msg":
            snapshot = _token_snapshot(payload)
            if snapshot is None:
                continue
            for source_key, field in _SNAPSHOT_FIELDS.items():
                value = token_count(snapshot, source_key)
                if value is not None:
                    usage[field] = value
        elif event_type == "response_item":
            if payload.get("type") == "custom_tool_call":
                name = payload.get("name")
                if isinstance(name, str):
                    tool_calls.append(name)

    tokens: TokenUsage | None = None
    if usage["input"] > 0 or usage["output"] > 0:
        tokens = TokenUsage(cache_creation=0, **usage)

    return build_record(AgentKind.CODEX, file, session_id, tokens, tool_calls)
