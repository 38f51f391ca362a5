import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from amanah.core.config import settings
from amanah.database import SessionLocal
from amanah.deps import user_from_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])


# =========================================================
# WEBSOCKET ENDPOINT (server -> client only)
# =========================================================
@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    token = websocket.query_params.get("token") or websocket.cookies.get(settings.AUTH_COOKIE_NAME)

    db = SessionLocal()
    try:
        user = user_from_token(db, token)
        user_id = user.id if user else None
    finally:
        db.close()

    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    live = websocket.app.state.amanah.live
    await live.connect(websocket, user_id)
    logger.debug("Live connection opened for user %s", user_id)

    try:
        while True:
            # no client protocol; reading only detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        live.disconnect(websocket, user_id)
        logger.debug("Live connection closed for user %s", user_id)
