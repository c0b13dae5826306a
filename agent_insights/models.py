"""Pydantic models shared by the parsers, the cache and the API."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Largest integer SQLite can persist; token counters clamp here.
TOKEN_MAX = 2**63 - 1


def saturating_add(current: int, value: int) -> int:
    """Add two non-negative counters, clamping at TOKEN_MAX."""
    if value <= 0:
        return current
    if current >= TOKEN_MAX - value:
        return TOKEN_MAX
    return current + value


class AgentKind(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str | None) -> "AgentKind":
        token = (label or "").strip().lower()
        for kind in cls:
            if kind.value == token:
                return kind
        return cls.UNKNOWN


# Agents whose logs report a trusted grand total per file.
API_TOTAL_AGENTS = frozenset({AgentKind.CODEX, AgentKind.GEMINI})


# ── Ingestion models ────────────────────────────────────────────────

class FileMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    created_at: datetime
    modified_at: datetime
    size: int = 0


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input: int = 0
    output: int = 0
    cached: int = 0
    cache_creation: int = 0
    reasoning: int = 0
    total: int = 0

    @property
    def subtotal(self) -> int:
        """input + output + cached + cache_creation, saturating."""
        value = 0
        for part in (self.input, self.output, self.cached, self.cache_creation):
            value = saturating_add(value, part)
        return value


class NormalizedRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent: AgentKind
    file_path: str
    created_at: datetime
    modified_at: datetime
    file_size: int = 0
    session_id: Optional[str] = None
    tokens: Optional[TokenUsage] = None
    tool_calls: list[str] = Field(default_factory=list)

    @property
    def activity_date(self) -> date:
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created.astimezone(timezone.utc).date()


# ── Heatmap models ──────────────────────────────────────────────────

class DayActivity(BaseModel):
    date: str
    count: int = 0
    size: int = 0


class ToolCallStats(BaseModel):
    tool_name: str
    count: int = 0


class TokenStats(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    reasoning_tokens: Optional[int] = None
    total_tokens: int = 0


class HeatmapData(BaseModel):
    agent: str
    data: list[DayActivity] = Field(default_factory=list)
    max_count: int = 0
    total_files: int = 0
    total_size: int = 0
    tool_calls: list[ToolCallStats] = Field(default_factory=list)
    token_stats: TokenStats = Field(default_factory=TokenStats)


# ── Cache + live update models ──────────────────────────────────────

class CacheStats(BaseModel):
    total_entries: int = 0
    entries_by_agent: dict[str, int] = Field(default_factory=dict)


class FileChangeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["file_added"] = "file_added"
    agent: str
    file_path: str
