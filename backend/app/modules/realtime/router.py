import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from app.modules.auth.deps import ResolveTokenSubject
from app.modules.realtime.hub import NormalizeChangeFilters, Subscriber, hub

router = APIRouter(prefix="/api/realtime", tags=["realtime"])
logger = logging.getLogger("realtime.socket")

POLICY_VIOLATION_UNAUTHORIZED = 4401
MAX_CHANNEL_LENGTH = 120


@router.get("/status")
async def realtime_status() -> dict:
    return {"status": "ok", "module": "realtime", "subscribers": len(hub.Subscribers())}


async def _HandleMessage(websocket: WebSocket, subscriber: Subscriber, message: dict) -> bool:
    message_type = str(message.get("Type") or "").lower()
    if message_type == "join":
        subscriber.Changes = NormalizeChangeFilters(message.get("Changes"))
        presence_key = message.get("PresenceKey")
        subscriber.PresenceKey = str(presence_key) if presence_key not in (None, "") else None
        await hub.Join(subscriber)
        await websocket.send_json({"Type": "status", "Status": "SUBSCRIBED", "Channel": subscriber.Channel})
        await hub.SendSync(subscriber)
        return True
    if message_type == "track":
        payload = message.get("Payload")
        if not isinstance(payload, dict):
            raise ValueError("Track payload must be an object")
        await hub.Track(subscriber, payload)
        return True
    if message_type == "untrack":
        await hub.Untrack(subscriber)
        return True
    if message_type == "leave":
        return False
    raise ValueError(f"Unsupported message type: {message_type or 'missing'}")


@router.websocket("/ws/{channel}")
async def RealtimeSocket(websocket: WebSocket, channel: str, token: str = "") -> None:
    await websocket.accept()
    try:
        user_id = ResolveTokenSubject(token)
    except HTTPException as exc:
        logger.warning("realtime socket rejected: %s", exc.detail)
        await websocket.close(code=POLICY_VIOLATION_UNAUTHORIZED, reason=str(exc.detail))
        return

    channel = channel.strip()[:MAX_CHANNEL_LENGTH]
    subscriber = Subscriber(Socket=websocket, Channel=channel, UserId=user_id)
    logger.info("realtime socket open channel=%s user_id=%s", channel, user_id)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                message = None
            if not isinstance(message, dict):
                await websocket.send_json({"Type": "error", "Message": "Messages must be JSON objects"})
                continue
            try:
                keep_open = await _HandleMessage(websocket, subscriber, message)
            except ValueError as exc:
                await websocket.send_json({"Type": "error", "Message": str(exc)})
                continue
            if not keep_open:
                await websocket.close()
                break
    except WebSocketDisconnect:
        pass
    finally:
        await hub.Leave(subscriber)
        logger.info("realtime socket closed channel=%s user_id=%s", channel, user_id)
