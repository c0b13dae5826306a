"""Parse Gemini CLI chat checkpoints into NormalizedRecord models."""
from __future__ import annotations

import json

from agent_insights.errors import ParseError
from agent_insights.models import AgentKind, FileMetadata, NormalizedRecord, TokenUsage, saturating_add
from agent_insights.parsers.platforms.common import (
    build_record,
    first_string,
    read_log_text,
    token_count,
)


def parse_chat_file(file: FileMetadata) -> NormalizedRecord:
    """Parse a single Gemini chat document.

    Per-message token counts are summed. The public output figure folds in the
    ``thoughts`` and ``tool`` counters, and the total is input + output + cached.
    """
    content = read_log_text(file)
    try:
        document = json.loads(content)
    except (ValueError, RecursionError) as exc:
        raise ParseError(file.path, f"invalid JSON document: {exc}") from exc
    if not isinstance(document, dict):
        raise ParseError(file.path, "expected a JSON object")

    session_id = first_string(document, "sessionId", "session_id")

    tokens_in = 0
    tokens_out = 0
    cached = 0
    thoughts = 0
    tool = 0
    tool_calls: list[str] = []

    messages = document.get("messages")
    if not isinstance(messages, list):
        messages = []

    for message in messages:
        if not isinstance(message, dict):
            continue

        counts = message.get("tokens")
        if isinstance(counts, dict):
            tokens_in = saturating_add(tokens_in, token_count(counts, "input") or 0)
            tokens_out = saturating_add(tokens_out, token_count(counts, "output") or 0)
            cached = saturating_add(cached, token_count(counts, "cached") or 0)
            thoughts = saturating_add(thoughts, token_count(counts, "thoughts") or 0)
            tool = saturating_add(tool, token_count(counts, "tool") or 0)

        calls = message.get("toolCalls")
        if isinstance(calls, list):
            for call in calls:
                name = call.get("name") if isinstance(call, dict) else None
                if isinstance(name, str):
                    tool_calls.append(name)

    tokens: TokenUsage | None = None
    if tokens_in > 0 or tokens_out > 0:
        output = saturating_add(saturating_add(tokens_out, thoughts), tool)
        tokens = TokenUsage(
            input=tokens_in,
            output=output,
            cached=cached,
            total=saturating_add(saturating_add(tokens_in, output), cached),
        )

    return build_record(AgentKind.GEMINI, file, session_id, tokens, tool_calls)
