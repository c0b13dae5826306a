"""Heatmap aggregation API."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from agent_insights.errors import InsightsError
from agent_insights.models import AgentKind, HeatmapData
from agent_insights.parsers.platforms.registry import PLATFORMS
from agent_insights.services.aggregate import aggregate_by_agent, aggregate_by_date
from agent_insights.services.collect import CollectionService

logger = logging.getLogger("agent_insights.api")

heatmap_router = APIRouter(prefix="/api", tags=["heatmap"])


def get_collection_service(request: Request) -> CollectionService:
    service = getattr(request.app.state, "collection_service", None)
    if not service:
        raise HTTPException(status_code=503, detail="Collection service not initialized")
    return service


@heatmap_router.get("/heatmaps", response_model=dict[str, HeatmapData], response_model_exclude_none=True)
async def get_all_heatmaps(request: Request) -> dict[str, HeatmapData]:
    """Heatmaps for every agent with at least one record, keyed by agent label."""
    service = get_collection_service(request)
    records = await service.collect_all()
    return aggregate_by_agent(records)


@heatmap_router.get("/heatmap/{agent}", response_model=HeatmapData, response_model_exclude_none=True)
async def get_agent_heatmap(agent: str, request: Request) -> HeatmapData:
    kind = AgentKind.from_label(agent)
    if kind not in PLATFORMS:
        raise HTTPException(status_code=404, detail=f"Unknown agent: {agent}")

    service = get_collection_service(request)
    try:
        records = await service.collect_agent(kind)
    except InsightsError as exc:
        logger.error("Failed to collect %s records: %s", kind.value, exc)
        raise HTTPException(status_code=500, detail=f"Failed to collect {kind.value} records") from exc
    return aggregate_by_date(records)
