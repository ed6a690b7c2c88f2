import asyncio

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from .hub import hub

logger = structlog.get_logger(__name__)

router = APIRouter()
public_router = APIRouter()

@public_router.get("/health")
async def health_check():
    return {"service": "realtime", "status": "running", "subscribers": len(hub)}


async def _drain_inbound(websocket: WebSocket):
    # Terminals have nothing to say on this channel; frames (text, binary, garbage) are dropped
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/ws")
async def order_events(websocket: WebSocket, branch_id: str = Query(default="", alias="branchId")):
    # Register before accepting so nothing published after the handshake is missed
    subscription = hub.subscribe(branch_id)
    try:
        await websocket.accept()
        reader = asyncio.create_task(_drain_inbound(websocket))
        writer = asyncio.create_task(_forward_events(websocket, subscription.queue))
        done, pending = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("realtime_connection_error", connection_id=subscription.connection_id,
                               error=str(exc))
    finally:
        hub.unsubscribe(subscription.connection_id)
