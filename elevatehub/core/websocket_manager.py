# elevatehub/core/websocket_manager.py
# Process-wide registry of live WebSocket connections: who is online, which
# connections sit in which conversation room, and fan-out helpers.
#
# Every mutation below runs without an await in between, so the event loop
# serialises them and no lock is needed. The registry lives in this process
# only; running several instances needs a shared registry instead.

import logging
import uuid
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def make_event(event: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"event": event, "data": data or {}}


class ConnectionManager:
    """Tracks connections per user and per room, and delivers JSON events."""

    def __init__(self):
        # {user_id: {connection_id: WebSocket}}
        self.user_connections: Dict[str, Dict[str, WebSocket]] = {}
        # {connection_id: user_id}
        self.connection_users: Dict[str, str] = {}
        # {room_id: {connection_id}}
        self.rooms: Dict[str, Set[str]] = {}
        # {connection_id: {room_id}}
        self.connection_rooms: Dict[str, Set[str]] = {}
        self.running = False

    async def start(self) -> None:
        self.running = True
        logger.info("Realtime gateway started")

    async def stop(self) -> None:
        self.running = False
        sockets = [
            ws for conns in self.user_connections.values() for ws in conns.values()
        ]
        self.user_connections.clear()
        self.connection_users.clear()
        self.rooms.clear()
        self.connection_rooms.clear()
        for ws in sockets:
            try:
                await ws.close(code=1001)
            except Exception as e:
                logger.debug(f"Close on shutdown failed: {e}")
        logger.info(f"Realtime gateway stopped, closed {len(sockets)} connection(s)")

    # --- Registration ---

    def register(self, user_id: str, websocket: WebSocket) -> str:
        """Add an accepted socket; returns its connection id."""
        connection_id = str(uuid.uuid4())
        self.user_connections.setdefault(user_id, {})[connection_id] = websocket
        self.connection_users[connection_id] = user_id
        self.connection_rooms[connection_id] = set()
        return connection_id

    def unregister(self, connection_id: str) -> Optional[str]:
        """
        Drop a connection and its room memberships.
        Returns the user id if that was the user's last connection, else None.
        """
        user_id = self.connection_users.pop(connection_id, None)
        if user_id is None:
            return None
        for room_id in self.connection_rooms.pop(connection_id, set()):
            self._discard_from_room(room_id, connection_id)
        conns = self.user_connections.get(user_id, {})
        conns.pop(connection_id, None)
        if conns:
            return None
        self.user_connections.pop(user_id, None)
        return user_id

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        await websocket.accept()
        first = not self.is_online(user_id)
        connection_id = self.register(user_id, websocket)
        logger.info(
            f"User {user_id} connected ({connection_id}); "
            f"{len(self.user_connections[user_id])} connection(s)"
        )
        if first:
            await self.broadcast(make_event("presence.join", {"user_id": user_id}), exclude_connection=connection_id)
        await self.send_to_connection(
            connection_id, make_event("presence.online", {"user_ids": self.online_user_ids()})
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        user_id = self.connection_users.get(connection_id)
        gone = self.unregister(connection_id)
        logger.info(f"User {user_id} disconnected ({connection_id})")
        if gone:
            await self.broadcast(make_event("presence.leave", {"user_id": gone}))

    # --- Rooms ---

    def join_room(self, connection_id: str, room_id: str) -> None:
        if connection_id not in self.connection_users:
            return
        self.rooms.setdefault(room_id, set()).add(connection_id)
        self.connection_rooms[connection_id].add(room_id)

    def leave_room(self, connection_id: str, room_id: str) -> bool:
        rooms = self.connection_rooms.get(connection_id)
        if not rooms or room_id not in rooms:
            return False
        rooms.discard(room_id)
        self._discard_from_room(room_id, connection_id)
        return True

    def in_room(self, connection_id: str, room_id: str) -> bool:
        return connection_id in self.rooms.get(room_id, ())

    def _discard_from_room(self, room_id: str, connection_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room_id]

    # --- Presence ---

    def is_online(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    def online_user_ids(self) -> List[str]:
        return sorted(self.user_connections)

    # --- Delivery ---

    async def send_to_connection(self, connection_id: str, payload: Dict[str, Any]) -> bool:
        user_id = self.connection_users.get(connection_id)
        if user_id is None:
            return False
        websocket = self.user_connections.get(user_id, {}).get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(payload)
            return True
        except Exception as e:
            # The receive loop of that connection notices the dead socket and unregisters it
            logger.warning(f"Failed to deliver {payload.get('event')} to {user_id} ({connection_id}): {e}")
            return False

    async def _send_many(self, connection_ids: List[str], payload: Dict[str, Any]) -> int:
        delivered = 0
        for connection_id in connection_ids:
            if await self.send_to_connection(connection_id, payload):
                delivered += 1
        return delivered

    async def send_to_user(
        self, user_id: str, payload: Dict[str, Any], exclude_connection: Optional[str] = None
    ) -> int:
        targets = [c for c in self.user_connections.get(user_id, {}) if c != exclude_connection]
        return await self._send_many(targets, payload)

    async def send_to_room(
        self, room_id: str, payload: Dict[str, Any], exclude_connection: Optional[str] = None
    ) -> int:
        targets = [c for c in self.rooms.get(room_id, ()) if c != exclude_connection]
        return await self._send_many(targets, payload)

    async def broadcast(self, payload: Dict[str, Any], exclude_connection: Optional[str] = None) -> int:
        targets = [c for c in self.connection_users if c != exclude_connection]
        return await self._send_many(targets, payload)


# Process-wide instance
manager = ConnectionManager()
