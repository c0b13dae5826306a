"""Incremental scan, cache and parse collection of agent log records."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from agent_insights.db.repositories.file_cache import SqliteFileCacheRepository
from agent_insights.errors import CacheError, InsightsError, ParseError
from agent_insights.models import AgentKind, CacheStats, FileMetadata, NormalizedRecord
from agent_insights.observability import (
    record_cache_result,
    record_parser_failure,
    record_scan,
    start_span,
)
from agent_insights.parsers import scanner
from agent_insights.parsers.platforms import registry

logger = logging.getLogger("agent_insights.collect")


class CollectionService:
    """Collects normalized records for each agent, reusing cached parses.

    The cache is an optional, injected dependency. A cached record is reused
    only while the file's mtime is unchanged; any cache failure degrades to a
    fresh parse.
    """

    def __init__(
        self,
        cache: SqliteFileCacheRepository | None = None,
        roots: dict[AgentKind, Path] | None = None,
    ):
        self.cache = cache
        self.roots = dict(roots) if roots is not None else registry.default_roots()

    def root_for(self, kind: AgentKind) -> Path | None:
        return self.roots.get(kind)

    async def _cached_record(self, file: FileMetadata) -> NormalizedRecord | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.lookup(file.path, file.modified_at)
        except CacheError as exc:
            logger.warning("Cache lookup failed, parsing fresh: %s", exc)
            return None

    async def _store_record(self, record: NormalizedRecord) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.store(record)
        except CacheError as exc:
            logger.warning("Cache store failed: %s", exc)

    async def collect_agent(self, kind: AgentKind) -> list[NormalizedRecord]:
        """Scan one agent's log root.

        Per-file failures drop that file. Raises ScanRootError when an existing
        root cannot be listed.
        """
        platform = registry.get_platform(kind)
        root = self.root_for(kind)
        if root is None:
            logger.warning("No log root configured for %s", kind.value)
            return []

        t0 = time.monotonic()
        with start_span("agent_insights.collect_agent", {"agent": kind.value, "root": str(root)}):
            files = await asyncio.to_thread(scanner.scan_files, root, platform.extension)

            records: list[NormalizedRecord] = []
            hits = 0
            misses = 0
            failures = 0
            for file in files:
                if not platform.is_eligible(Path(file.path)):
                    continue

                cached = await self._cached_record(file)
                if cached is not None:
                    hits += 1
                    records.append(cached)
                    continue

                misses += 1
                try:
                    record = await asyncio.to_thread(registry.parse_log_file, kind, file)
                except ParseError as exc:
                    failures += 1
                    record_parser_failure(kind.value)
                    logger.warning("Skipping %s log: %s", kind.value, exc)
                    continue

                await self._store_record(record)
                records.append(record)

        duration_ms = (time.monotonic() - t0) * 1000
        record_scan(kind.value, "success", duration_ms)
        record_cache_result(kind.value, hits=hits, misses=misses)
        logger.info(
            "%s scan: %d records (%d cache hits, %d cache misses, %d failed) in %.0fms",
            kind.value, len(records), hits, misses, failures, duration_ms,
        )
        return records

    async def _collect_agent_safely(self, kind: AgentKind) -> list[NormalizedRecord]:
        try:
            return await self.collect_agent(kind)
        except InsightsError as exc:
            record_scan(kind.value, "error", 0.0)
            logger.error("Failed to collect %s records: %s", kind.value, exc)
            return []

    async def collect_by_agent(self) -> dict[AgentKind, list[NormalizedRecord]]:
        """Scan every configured agent concurrently.

        A failed agent contributes an empty list instead of aborting the others.
        """
        kinds = [kind for kind in registry.PLATFORMS if kind in self.roots]
        results = await asyncio.gather(*(self._collect_agent_safely(kind) for kind in kinds))
        return dict(zip(kinds, results))

    async def collect_all(self) -> list[NormalizedRecord]:
        by_agent = await self.collect_by_agent()
        all_records = [record for records in by_agent.values() for record in records]
        logger.info("Total collected: %d records", len(all_records))
        return all_records

    async def cache_stats(self) -> CacheStats | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.stats()
        except CacheError as exc:
            logger.warning("Cache stats unavailable: %s", exc)
            return None
