"""WebSocket channel for live log file notifications."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger("agent_insights.ws")

updates_router = APIRouter(tags=["updates"])

PING_INTERVAL_SECONDS = 30


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


@updates_router.websocket("/ws")
async def updates_socket(websocket: WebSocket) -> None:
    broadcaster = getattr(websocket.app.state, "broadcaster", None)
    if broadcaster is None:
        await websocket.accept()
        await websocket.close(code=1011)
        return

    # Subscribe before accepting so nothing published after the handshake is missed.
    async with broadcaster.subscription() as queue:
        await websocket.accept()
        closed = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while not closed.done():
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {getter, closed},
                    timeout=PING_INTERVAL_SECONDS,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if getter in done:
                    await websocket.send_json(getter.result().model_dump())
                    continue
                getter.cancel()
                if not done:
                    await websocket.send_json({"type": "ping"})
        except WebSocketDisconnect:
            pass
        finally:
            closed.cancel()
        logger.debug("WebSocket connection closed")
