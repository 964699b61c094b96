# elevatehub/routers/realtime_router.py

import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import async_sessionmaker

from elevatehub.core.database import get_session_factory
from elevatehub.core.security import get_current_user_from_websocket_token
from elevatehub.core.websocket_manager import manager
from elevatehub.models.user import User
from elevatehub.services.realtime_service import RealtimeService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    user: User = Depends(get_current_user_from_websocket_token),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Realtime gateway. Connect with /ws?token=<identity token>.
    Frames are JSON: {"event": "...", "data": {...}}.
    An idle connection holds no database session.
    """
    connection_id = await manager.connect(websocket, user.user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            async with session_factory() as db:
                await RealtimeService(db, manager).handle_raw(connection_id, user, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Unexpected error on connection {connection_id} of user {user.user_id}: {e}", exc_info=True)
    finally:
        await manager.disconnect(connection_id)
