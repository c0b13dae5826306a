"""Parse Claude Code JSONL transcripts into NormalizedRecord models."""
from __future__ import annotations

from typing import Any

from agent_insights.models import AgentKind, FileMetadata, NormalizedRecord, TokenUsage, saturating_add
from agent_insights.parsers.platforms.common import (
    build_record,
    first_string,
    iter_json_lines,
    read_log_text,
    token_count,
)


def _tool_use_names(entry: dict[str, Any]) -> list[str]:
    message = entry.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    names: list[str] = []
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "tool_use":
            continue
        name = item.get("name")
        if isinstance(name, str):
            names.append(name)
    return names


def _usage_block(entry: dict[str, Any]) -> dict[str, Any] | None:
    usage = entry.get("usage")
    if usage is None:
        message = entry.get("message")
        if isinstance(message, dict):
            usage = message.get("usage")
    return usage if isinstance(usage, dict) else None


def parse_session_file(file: FileMetadata) -> NormalizedRecord:
    """Parse a single Claude Code session log.

    Usage blocks are per-message deltas, so every counter is summed across the
    file. The reported total is the sum of the four subtotals.
    """
    content = read_log_text(file)

    session_id: str | None = None
    tokens_in = 0
    tokens_out = 0
    cache_read = 0
    cache_creation = 0
    tool_calls: list[str] = []

    for entry in iter_json_lines(content):
        if session_id is None:
            session_id = first_string(entry, "sessionId", "session_id")

        tool_calls.extend(_tool_use_names(entry))

        usage = _usage_block(entry)
        if usage is None:
            continue
        tokens_in = saturating_add(tokens_in, token_count(usage, "input_tokens") or 0)
        tokens_out = saturating_add(tokens_out, token_count(usage, "output_tokens") or 0)
        cache_read = saturating_add(cache_read, token_count(usage, "cache_read_input_tokens") or 0)
        cache_creation = saturating_add(cache_creation, token_count(usage, "cache_creation_input_tokens") or 0)

    tokens: TokenUsage | None = None
    if tokens_in > 0 or tokens_out > 0:
        usage_totals = TokenUsage(
            input=tokens_in,
            output=tokens_out,
            cached=cache_read,
            cache_creation=cache_creation,
        )
        tokens = usage_totals.model_copy(update={"total": usage_totals.subtotal})

    return build_record(AgentKind.CLAUDE, file, session_id, tokens, tool_calls)
