"""Fold normalized records into per-day heatmap statistics."""
from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Iterable

from agent_insights.models import (
    API_TOTAL_AGENTS,
    AgentKind,
    DayActivity,
    HeatmapData,
    NormalizedRecord,
    TokenStats,
    ToolCallStats,
    saturating_add,
)


def _build_heatmap(
    agent: str,
    day_counts: dict[date, tuple[int, int]],
    tool_calls: list[ToolCallStats],
    token_stats: TokenStats,
) -> HeatmapData:
    data = [
        DayActivity(date=day.isoformat(), count=count, size=size)
        for day, (count, size) in sorted(day_counts.items())
    ]
    return HeatmapData(
        agent=agent,
        data=data,
        max_count=max((d.count for d in data), default=0),
        total_files=sum(d.count for d in data),
        total_size=sum(d.size for d in data),
        tool_calls=tool_calls,
        token_stats=token_stats,
    )


def aggregate_by_date(records: Iterable[NormalizedRecord]) -> HeatmapData:
    """Aggregate one agent's records into a heatmap.

    Codex and Gemini files already carry a trusted per-file total, so those
    totals are summed as-is. For every other agent the total is rebuilt from
    the input, output, cache-creation and cache-read subtotals.
    """
    records = list(records)
    day_counts: dict[date, tuple[int, int]] = {}
    tool_counter: Counter[str] = Counter()
    total_input = 0
    total_output = 0
    total_cache_creation = 0
    total_cache_read = 0
    total_reasoning = 0
    total_tokens = 0

    for record in records:
        day = record.activity_date
        count, size = day_counts.get(day, (0, 0))
        day_counts[day] = (count + 1, size + record.file_size)

        tool_counter.update(record.tool_calls)

        tokens = record.tokens
        if tokens is None:
            continue
        total_input = saturating_add(total_input, tokens.input)
        total_output = saturating_add(total_output, tokens.output)
        total_cache_creation = saturating_add(total_cache_creation, tokens.cache_creation)
        total_cache_read = saturating_add(total_cache_read, tokens.cached)
        total_reasoning = saturating_add(total_reasoning, tokens.reasoning)
        if record.agent in API_TOTAL_AGENTS:
            total_tokens = saturating_add(total_tokens, tokens.total)
        else:
            total_tokens = saturating_add(total_tokens, tokens.subtotal)

    # Counter keeps first-seen order, and sorted() is stable, so ties stay put.
    tool_calls = [
        ToolCallStats(tool_name=name, count=count)
        for name, count in sorted(tool_counter.items(), key=lambda item: -item[1])
    ]

    token_stats = TokenStats(
        input_tokens=total_input,
        output_tokens=total_output,
        cache_creation_tokens=total_cache_creation,
        cache_read_tokens=total_cache_read,
        reasoning_tokens=total_reasoning if total_reasoning > 0 else None,
        total_tokens=total_tokens,
    )

    agent = records[0].agent.value if records else AgentKind.UNKNOWN.value
    return _build_heatmap(agent, day_counts, tool_calls, token_stats)


def aggregate_by_agent(records: Iterable[NormalizedRecord]) -> dict[str, HeatmapData]:
    """Partition records by agent and aggregate each partition independently."""
    by_agent: dict[str, list[NormalizedRecord]] = {}
    for record in records:
        by_agent.setdefault(record.agent.value, []).append(record)
    return {agent: aggregate_by_date(agent_records) for agent, agent_records in by_agent.items()}
