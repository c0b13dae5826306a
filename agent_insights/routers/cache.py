"""Cache observability API."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from agent_insights.routers.heatmap import get_collection_service

cache_router = APIRouter(prefix="/api/cache", tags=["cache"])


@cache_router.get("/stats")
async def get_cache_stats(request: Request) -> dict[str, Any]:
    service = get_collection_service(request)
    stats = await service.cache_stats()
    if stats is None:
        return {"status": "unavailable", "total_entries": 0, "entries_by_agent": {}}
    return {"status": "ok", **stats.model_dump()}
