# backend/messenger/api/routes/ws.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from messenger.db.session import SessionLocal
from messenger.realtime.handler import ProtocolHandler

router = APIRouter(tags=['realtime'])


@router.websocket('/ws')
async def channel(websocket: WebSocket):
    """
    Persistent channel. JSON frames in both directions (inbound may be text
    or binary); the client must send an ``authenticate`` frame before
    anything else is accepted.
    """
    await websocket.accept()
    handler = ProtocolHandler(websocket, registry=websocket.app.state.registry, session_factory=SessionLocal)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await handler.handle(raw)
    except WebSocketDisconnect:
        pass
    finally:
        handler.close()
