# elevatehub/services/realtime_service.py
# Handles inbound gateway events for one authenticated connection.

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.exceptions import AppError
from elevatehub.core.websocket_manager import ConnectionManager, make_event, manager
from elevatehub.models.user import User
from elevatehub.schemas.message_schema import MessageOut, WsEvent
from elevatehub.services.message_service import MessageService
from elevatehub.utils.rooms import parse_room_key, room_key

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Bad inbound event; reported to the sender as an `error` event."""


def _require(data: Dict[str, Any], *fields: str) -> list:
    values = []
    for field in fields:
        value = data.get(field)
        if not isinstance(value, str) or not value:
            raise GatewayError(f"'{field}' is required")
        values.append(value)
    return values


class RealtimeService:
    def __init__(self, db: AsyncSession, connection_manager: Optional[ConnectionManager] = None):
        self.db = db
        self.manager = connection_manager or manager
        self.message_service = MessageService(db)
        self.handlers = {
            "room.join": self.on_room_join,
            "room.leave": self.on_room_leave,
            "message.send": self.on_message_send,
            "typing.start": self.on_typing_start,
            "typing.stop": self.on_typing_stop,
        }

    async def handle_raw(self, connection_id: str, user: User, raw: str) -> None:
        """Parse one inbound frame and dispatch it; failures go back as `error`."""
        try:
            try:
                event = WsEvent.model_validate(json.loads(raw))
            except (json.JSONDecodeError, PydanticValidationError):
                raise GatewayError("Malformed event")
            handler = self.handlers.get(event.event)
            if handler is None:
                raise GatewayError(f"Unknown event '{event.event}'")
            await handler(connection_id, user, event.data)
        except GatewayError as e:
            await self._error(connection_id, str(e))
        except AppError as e:
            await self._error(connection_id, e.detail)
        except Exception as e:
            logger.error(f"Failed to handle event on connection {connection_id}: {e}", exc_info=True)
            await self._error(connection_id, "Internal server error")
        finally:
            # End the read transaction so the next event sees fresh rows
            await self.db.rollback()

    async def _error(self, connection_id: str, message: str) -> None:
        await self.manager.send_to_connection(connection_id, make_event("error", {"message": message}))

    def _check_room_member(self, connection_id: str, user: User, room_id: str) -> None:
        parsed = parse_room_key(room_id)
        if parsed is None or user.user_id not in parsed[1:]:
            raise GatewayError("Unknown room")
        if not self.manager.in_room(connection_id, room_id):
            raise GatewayError("Join the room first")

    async def on_room_join(self, connection_id: str, user: User, data: Dict[str, Any]) -> None:
        job_id, other_user_id = _require(data, "job_id", "other_user_id")
        await self.message_service.ensure_can_converse(job_id, user.user_id, other_user_id)
        room_id = room_key(job_id, user.user_id, other_user_id)
        self.manager.join_room(connection_id, room_id)
        await self.manager.send_to_connection(connection_id, make_event("room.joined", {"room_id": room_id}))

    async def on_room_leave(self, connection_id: str, user: User, data: Dict[str, Any]) -> None:
        (room_id,) = _require(data, "room_id")
        self.manager.leave_room(connection_id, room_id)
        await self.manager.send_to_connection(connection_id, make_event("room.left", {"room_id": room_id}))

    async def on_message_send(self, connection_id: str, user: User, data: Dict[str, Any]) -> None:
        """
        The message is persisted over REST first; this only relays it.
        Receivers de-duplicate on message_id.
        """
        (message_id,) = _require(data, "message_id")
        message = await self.message_service.get_message_for_sender(message_id, user.user_id)
        payload = MessageOut.model_validate(message).model_dump(mode="json")
        room_id = room_key(message.job_id, message.sender_id, message.receiver_id)

        await self.manager.send_to_room(room_id, make_event("message.receive", {"message": payload}))
        await self.manager.send_to_user(
            message.receiver_id,
            make_event("notification.new_message", {"conversation_id": message.conversation_id, "message": payload}),
        )
        await self.manager.send_to_connection(connection_id, make_event("message.ack", {"message_id": message_id}))

    async def on_typing_start(self, connection_id: str, user: User, data: Dict[str, Any]) -> None:
        (room_id,) = _require(data, "room_id")
        self._check_room_member(connection_id, user, room_id)
        display_name = data.get("display_name") or user.full_name
        await self.manager.send_to_room(
            room_id,
            make_event("typing.show", {"room_id": room_id, "user_id": user.user_id, "display_name": display_name}),
            exclude_connection=connection_id,
        )

    async def on_typing_stop(self, connection_id: str, user: User, data: Dict[str, Any]) -> None:
        (room_id,) = _require(data, "room_id")
        self._check_room_member(connection_id, user, room_id)
        await self.manager.send_to_room(
            room_id,
            make_event("typing.hide", {"room_id": room_id, "user_id": user.user_id}),
            exclude_connection=connection_id,
        )
