"""Agent Insights FastAPI backend: main application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_insights import config
from agent_insights.db import connection, sqlite_migrations
from agent_insights.db.file_watcher import FileWatcher
from agent_insights.db.repositories.file_cache import SqliteFileCacheRepository
from agent_insights.notifier import UpdateBroadcaster
from agent_insights.observability import initialize as initialize_observability, shutdown as shutdown_observability
from agent_insights.routers.cache import cache_router
from agent_insights.routers.heatmap import heatmap_router
from agent_insights.routers.updates import updates_router
from agent_insights.services.collect import CollectionService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agent_insights")


async def _run_startup_scan(service: CollectionService) -> None:
    records = await service.collect_all()
    logger.info("Startup scan complete: %d total records found", len(records))
    stats = await service.cache_stats()
    if stats is not None:
        logger.info("Cache stats: %d total entries", stats.total_entries)
        for agent, count in stats.entries_by_agent.items():
            logger.info("  %s: %d cached entries", agent, count)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Agent Insights backend starting up")
    initialize_observability(app)

    # 1. Initialize DB connection + schema
    db = await connection.get_connection()
    await sqlite_migrations.run_migrations(db)

    # 2. Collection service with an injected cache
    service = CollectionService(cache=SqliteFileCacheRepository(db))
    app.state.collection_service = service

    # 3. Initial scan warms the cache without blocking startup
    if config.STARTUP_SCAN_ENABLED:
        app.state.scan_task = asyncio.create_task(_run_startup_scan(service))

    # 4. Live update channel + file watcher
    broadcaster = UpdateBroadcaster(config.SUBSCRIBER_QUEUE_SIZE)
    watcher = FileWatcher(broadcaster)
    app.state.broadcaster = broadcaster
    app.state.file_watcher = watcher
    if config.WATCHER_ENABLED:
        await watcher.start((kind.value, root) for kind, root in service.roots.items())

    yield

    logger.info("Agent Insights backend shutting down")

    scan_task = getattr(app.state, "scan_task", None)
    if scan_task is not None:
        scan_task.cancel()
        try:
            await scan_task
        except asyncio.CancelledError:
            pass

    await watcher.stop()
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="Agent Insights API",
    description="Usage heatmaps for local AI coding-assistant logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(heatmap_router)
app.include_router(cache_router)
app.include_router(updates_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    watcher = getattr(app.state, "file_watcher", None)
    return {
        "status": "ok",
        "db": "connected" if connection.is_connected() else "disconnected",
        "watcher": "running" if watcher is not None and watcher.is_running else "stopped",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("agent_insights.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
