"""In-process WebSocket relay.

A single ``ConnectionManager`` per process maps user ids to their open
sockets. Route handlers push events after a mutation; users without an open
socket simply miss the push (the persisted notification is still there).
There is no queueing, ordering guarantee or heartbeat.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket, status

from app.models.user import UserRole

logger = logging.getLogger(__name__)


class EventType:
    """Event names pushed to clients."""

    NEW_TICKET = "new_ticket"
    TICKET_STATUS_UPDATED = "ticket_status_updated"
    NEW_TICKET_MESSAGE = "new_ticket_message"
    NEW_MESSAGE = "new_message"
    MESSAGE_READ = "message_read"
    ORDER_STATUS_UPDATED = "order_status_updated"
    NOTIFICATION = "notification"

    # Handshake and keepalive replies on the socket itself
    CONNECTED = "connected"
    PONG = "pong"


class ConnectionManager:
    """Registry of live sockets keyed by user id."""

    def __init__(self) -> None:
        self._connections: dict[uuid.UUID, set[WebSocket]] = {}
        self._roles: dict[uuid.UUID, UserRole] = {}

    def register(self, websocket: WebSocket, user_id: uuid.UUID, role: UserRole) -> None:
        """Track an already accepted socket."""
        self._connections.setdefault(user_id, set()).add(websocket)
        self._roles[user_id] = role
        logger.info(
            f"WS connected: user={user_id} role={role.value} "
            f"(sockets for user: {len(self._connections[user_id])})"
        )

    def unregister(self, websocket: WebSocket, user_id: uuid.UUID) -> None:
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._connections[user_id]
            self._roles.pop(user_id, None)
        logger.info(f"WS disconnected: user={user_id} (online users: {len(self._connections)})")

    async def disconnect_user(self, user_id: uuid.UUID, reason: str) -> int:
        """Close every socket of a user with 1008 and forget their role.

        Used when the user's access changes; clients reconnect and are
        authorized again. Returns the number of sockets closed.
        """
        sockets = self._connections.pop(user_id, set())
        self._roles.pop(user_id, None)
        if not sockets:
            return 0

        results = await asyncio.gather(
            *(ws.close(code=status.WS_1008_POLICY_VIOLATION) for ws in sockets),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"WS close for user {user_id} failed, socket already gone: {result}")
        logger.info(f"WS closed for user {user_id} ({reason}): {len(sockets)} socket(s)")
        return len(sockets)

    def is_online(self, user_id: uuid.UUID) -> bool:
        return user_id in self._connections

    @property
    def online_user_count(self) -> int:
        return len(self._connections)

    @property
    def socket_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    async def send_to_user(self, user_id: uuid.UUID, event: str, data: Any) -> int:
        """Send one event to every socket of a user. Returns sockets reached."""
        sockets = self._connections.get(user_id)
        if not sockets:
            logger.debug(f"WS push dropped, user offline: {user_id} ({event})")
            return 0
        return await self._deliver({user_id: set(sockets)}, event, data)

    async def send_to_users(self, user_ids: Iterable[uuid.UUID], event: str, data: Any) -> int:
        targets = {
            user_id: set(self._connections[user_id])
            for user_id in set(user_ids)
            if user_id in self._connections
        }
        return await self._deliver(targets, event, data)

    async def send_to_role(self, role: UserRole, event: str, data: Any) -> int:
        targets = {
            user_id: set(sockets)
            for user_id, sockets in self._connections.items()
            if self._roles.get(user_id) == role
        }
        return await self._deliver(targets, event, data)

    async def broadcast(self, event: str, data: Any) -> int:
        targets = {user_id: set(sockets) for user_id, sockets in self._connections.items()}
        return await self._deliver(targets, event, data)

    async def _deliver(
        self,
        targets: dict[uuid.UUID, set[WebSocket]],
        event: str,
        data: Any,
    ) -> int:
        if not targets:
            return 0

        message = json.dumps({"type": event, "data": data}, ensure_ascii=False, default=str)
        pairs = [(user_id, ws) for user_id, sockets in targets.items() for ws in sockets]
        results = await asyncio.gather(
            *(ws.send_text(message) for _, ws in pairs),
            return_exceptions=True,
        )

        delivered = 0
        for (user_id, ws), result in zip(pairs, results):
            if isinstance(result, Exception):
                logger.warning(f"WS send failed for user {user_id}, evicting socket: {result}")
                self.unregister(ws, user_id)
            else:
                delivered += 1
        return delivered


_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get or create the process-wide connection manager."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager
