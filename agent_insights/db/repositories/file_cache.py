"""SQLite implementation of the parsed-file cache."""
from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Sequence

import aiosqlite

from agent_insights.date_utils import from_storage_timestamp, to_storage_timestamp
from agent_insights.errors import CacheError
from agent_insights.models import AgentKind, CacheStats, NormalizedRecord, TokenUsage

_RECORD_COLUMNS = (
    "agent_type, created_at, modified_at, file_size, session_id, "
    "tokens_input, tokens_output, tokens_cached, tokens_cache_creation, "
    "tokens_reasoning, tokens_total, tool_calls"
)


def _decode_tool_calls(raw: Any) -> list[str]:
    if not raw:
        return []
    parsed = json.loads(raw)
    if not isinstance(parsed, list):
        raise ValueError("tool_calls column is not a JSON array")
    return [str(name) for name in parsed]


def _row_to_record(file_path: str, row: Sequence[Any]) -> NormalizedRecord:
    (
        agent_type, created_at, modified_at, file_size, session_id,
        tokens_input, tokens_output, tokens_cached, tokens_cache_creation,
        tokens_reasoning, tokens_total, tool_calls,
    ) = tuple(row)

    tokens: TokenUsage | None = None
    if tokens_total is not None:
        tokens = TokenUsage(
            input=tokens_input or 0,
            output=tokens_output or 0,
            cached=tokens_cached or 0,
            cache_creation=tokens_cache_creation or 0,
            reasoning=tokens_reasoning or 0,
            total=tokens_total,
        )

    return NormalizedRecord(
        agent=AgentKind.from_label(agent_type),
        file_path=file_path,
        created_at=from_storage_timestamp(created_at),
        modified_at=from_storage_timestamp(modified_at),
        file_size=file_size or 0,
        session_id=session_id,
        tokens=tokens,
        tool_calls=_decode_tool_calls(tool_calls),
    )


class SqliteFileCacheRepository:
    """Parsed log records keyed by source path and validated by mtime.

    Every call goes through one lock so a shared connection sees a single
    reader or writer at a time. Backend failures surface as CacheError.
    """

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self._lock = asyncio.Lock()

    async def lookup(self, file_path: str, modified_at: datetime) -> NormalizedRecord | None:
        """Return the cached record only if it was stored for this exact mtime."""
        async with self._lock:
            try:
                async with self.db.execute(
                    f"SELECT {_RECORD_COLUMNS} FROM file_cache WHERE file_path = ? AND modified_at = ?",
                    (file_path, to_storage_timestamp(modified_at)),
                ) as cur:
                    row = await cur.fetchone()
            except (sqlite3.Error, ValueError) as exc:
                raise CacheError(f"Cache lookup failed for {file_path}: {exc}") from exc

        if not row:
            return None
        try:
            return _row_to_record(file_path, row)
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Corrupt cache entry for {file_path}: {exc}") from exc

    async def store(self, record: NormalizedRecord) -> None:
        """Upsert the entry for ``record.file_path``; last writer wins."""
        tokens = record.tokens
        params = (
            record.file_path,
            record.agent.value,
            to_storage_timestamp(record.created_at),
            to_storage_timestamp(record.modified_at),
            record.file_size,
            record.session_id,
            tokens.input if tokens else None,
            tokens.output if tokens else None,
            tokens.cached if tokens else None,
            tokens.cache_creation if tokens else None,
            tokens.reasoning if tokens else None,
            tokens.total if tokens else None,
            json.dumps(record.tool_calls),
            datetime.now(timezone.utc).isoformat(),
        )
        async with self._lock:
            try:
                await self.db.execute(
                    """INSERT INTO file_cache (
                        file_path, agent_type, created_at, modified_at, file_size, session_id,
                        tokens_input, tokens_output, tokens_cached, tokens_cache_creation,
                        tokens_reasoning, tokens_total, tool_calls, cached_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(file_path) DO UPDATE SET
                        agent_type=excluded.agent_type, created_at=excluded.created_at,
                        modified_at=excluded.modified_at, file_size=excluded.file_size,
                        session_id=excluded.session_id,
                        tokens_input=excluded.tokens_input, tokens_output=excluded.tokens_output,
                        tokens_cached=excluded.tokens_cached,
                        tokens_cache_creation=excluded.tokens_cache_creation,
                        tokens_reasoning=excluded.tokens_reasoning,
                        tokens_total=excluded.tokens_total,
                        tool_calls=excluded.tool_calls, cached_at=excluded.cached_at
                    """,
                    params,
                )
                await self.db.commit()
            except (sqlite3.Error, OverflowError, ValueError) as exc:
                raise CacheError(f"Cache store failed for {record.file_path}: {exc}") from exc

    async def stats(self) -> CacheStats:
        async with self._lock:
            try:
                async with self.db.execute("SELECT COUNT(*) FROM file_cache") as cur:
                    row = await cur.fetchone()
                async with self.db.execute(
                    "SELECT agent_type, COUNT(*) FROM file_cache GROUP BY agent_type ORDER BY agent_type"
                ) as cur:
                    rows = await cur.fetchall()
            except (sqlite3.Error, ValueError) as exc:
                raise CacheError(f"Cache stats query failed: {exc}") from exc

        return CacheStats(
            total_entries=row[0] if row else 0,
            entries_by_agent={str(r[0]): int(r[1]) for r in rows},
        )
