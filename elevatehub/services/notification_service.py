# elevatehub/services/notification_service.py
import logging
from typing import Any, Dict, Optional

from elevatehub.core.websocket_manager import ConnectionManager, make_event, manager

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Server-initiated realtime pushes (application decisions, work reviews,
    payments). Delivery is best-effort: the state change has already been
    committed, so a failed push is logged and dropped.
    """

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        self.manager = connection_manager or manager

    async def notify_user(self, user_id: str, event: str, data: Dict[str, Any]) -> int:
        try:
            delivered = await self.manager.send_to_user(user_id, make_event(event, data))
        except Exception as e:
            logger.warning(f"Realtime notification {event} to {user_id} failed: {e}", exc_info=True)
            return 0
        if delivered:
            logger.debug(f"Pushed {event} to {user_id} on {delivered} connection(s)")
        return delivered
