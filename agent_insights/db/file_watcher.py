"""File watcher service using watchfiles.

Monitors each agent's log root for new or modified log files and publishes a
FileChangeEvent per file. Re-aggregation is left to the consumers.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from watchfiles import Change, awatch

from agent_insights.models import FileChangeEvent
from agent_insights.notifier import UpdateBroadcaster

logger = logging.getLogger("agent_insights.watcher")

WATCHED_SUFFIXES = frozenset({".json", ".jsonl"})


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def owning_agent(path: Path, roots: Iterable[tuple[str, Path]]) -> str | None:
    """Return the label of the deepest watched root containing ``path``."""
    best: tuple[int, str] | None = None
    for agent, root in roots:
        if _is_under(path, root):
            depth = len(root.parts)
            if best is None or depth > best[0]:
                best = (depth, agent)
    return best[1] if best else None


def classify_changes(
    changes: Iterable[tuple[Change, str]],
    roots: Iterable[tuple[str, Path]],
) -> list[FileChangeEvent]:
    """Turn raw watchfiles changes into per-file events.

    Only added/modified ``.json``/``.jsonl`` files under a watched root count.
    """
    roots = list(roots)
    events: list[FileChangeEvent] = []
    for change_type, path_str in changes:
        if change_type not in (Change.added, Change.modified):
            continue
        path = Path(path_str)
        if path.suffix not in WATCHED_SUFFIXES:
            continue
        agent = owning_agent(path, roots)
        if agent is None:
            continue
        events.append(FileChangeEvent(agent=agent, file_path=str(path)))
    return events


class FileWatcher:
    """Background watcher with one watchfiles task per agent root.

    A root that is missing at start is skipped, and a root whose watch fails is
    logged without affecting the others.
    """

    def __init__(self, broadcaster: UpdateBroadcaster):
        self.broadcaster = broadcaster
        self._tasks: dict[str, asyncio.Task] = {}
        self._stop_event: Optional[asyncio.Event] = None
        self._roots: list[tuple[str, Path]] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    @property
    def watched_roots(self) -> list[tuple[str, Path]]:
        return list(self._roots)

    async def start(self, roots: Iterable[tuple[str, Path]]) -> None:
        """Start watching every existing root in background tasks."""
        if self.is_running:
            logger.warning("File watcher already running")
            return

        self._stop_event = asyncio.Event()
        self._roots = []
        self._tasks = {}
        for agent, root in roots:
            root = Path(root).expanduser()
            if not root.exists():
                logger.info("Skipping watch for %s: %s does not exist", agent, root)
                continue
            resolved = root.resolve()
            self._roots.append((agent, resolved))
            self._tasks[agent] = asyncio.create_task(self._watch_root(agent, resolved))
            logger.info("Watching %s for %s changes", resolved, agent)

        if not self._tasks:
            logger.warning("No watch paths exist, watcher has nothing to monitor")

    async def stop(self) -> None:
        """Stop all watch tasks."""
        if self._stop_event is not None:
            self._stop_event.set()
        for task in self._tasks.values():
            task.cancel()
        for task in self._tasks.values():
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = {}
        logger.info("File watcher stopped")

    async def _watch_root(self, agent: str, root: Path) -> None:
        try:
            async for changes in awatch(root, stop_event=self._stop_event):
                self.dispatch(changes)
        except asyncio.CancelledError:
            logger.debug("Watch task for %s cancelled", agent)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("File watcher error for %s (%s): %s", agent, root, exc)

    def dispatch(self, changes: Iterable[tuple[Change, str]]) -> list[FileChangeEvent]:
        """Publish an event for every relevant change; returns what was sent."""
        events = classify_changes(changes, self._roots)
        for event in events:
            self.broadcaster.publish(event)
        if events:
            logger.info("Detected %d log file changes", len(events))
        return events
