from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from fastapi import WebSocket

from .schemas.events import OutboundEvent

logger = logging.getLogger(__name__)


class BroadcastGateway(Protocol):
    async def publish_to_session(self, session_id: str, event: OutboundEvent) -> None: ...

    async def publish_to_connection(self, connection_id: str, event: OutboundEvent) -> None: ...

    def subscribe(self, session_id: str, connection_id: str) -> None: ...

    def unsubscribe(self, session_id: str, connection_id: str) -> None: ...

    def close_session(self, session_id: str) -> None: ...


class WebSocketGateway:
    """Delivers events to live WebSocket connections grouped by session."""

    def __init__(self, on_send_failure: Callable[[], None] | None = None) -> None:
        self._sockets: dict[str, WebSocket] = {}
        self._members: dict[str, dict[str, None]] = {}
        self._on_send_failure = on_send_failure

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = websocket

    def detach(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)
        for members in self._members.values():
            members.pop(connection_id, None)

    def subscribe(self, session_id: str, connection_id: str) -> None:
        self._members.setdefault(session_id, {})[connection_id] = None

    def unsubscribe(self, session_id: str, connection_id: str) -> None:
        members = self._members.get(session_id)
        if members is not None:
            members.pop(connection_id, None)

    def close_session(self, session_id: str) -> None:
        self._members.pop(session_id, None)

    def members(self, session_id: str) -> list[str]:
        return list(self._members.get(session_id, {}))

    async def publish_to_session(self, session_id: str, event: OutboundEvent) -> None:
        message = event.to_message()
        for connection_id in self.members(session_id):
            await self._send_safe(connection_id, message, session_id=session_id)

    async def publish_to_connection(self, connection_id: str, event: OutboundEvent) -> None:
        await self._send_safe(connection_id, event.to_message())

    async def _send_safe(
        self,
        connection_id: str,
        data: dict[str, Any],
        session_id: str | None = None,
    ) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(data)
        except Exception as exc:
            # Connection may already be closed.
            if self._on_send_failure is not None:
                self._on_send_failure()
            logger.debug(
                "[SEND_FAIL] session=%s connection=%s reason=%s ws_client_state=%s",
                session_id or "-",
                connection_id,
                repr(exc),
                getattr(websocket, "client_state", None),
            )
