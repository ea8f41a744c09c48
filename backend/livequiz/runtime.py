from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .config import settings
from .errors import QuizError
from .question_bank import load_question_bank
from .runtime_constants import (
    ADMIN_LEFT_MESSAGE,
    MAX_PLAYERS,
    QUESTION_TIME_MS,
    RESULTS_PAUSE_MS,
    SERVER_SHUTDOWN_MESSAGE,
    SESSION_ID_MAX_ATTEMPTS,
)
from .runtime_gateway import WebSocketGateway
from .runtime_message_handlers import handle_message as handle_session_message
from .runtime_registry import ParticipantDirectory, SessionRegistry
from .runtime_session import QuizSession
from .runtime_types import Question
from .runtime_utils import now_ms, random_id, random_session_code
from .schemas.events import ErrorEvent, parse_command

logger = logging.getLogger(__name__)


class QuizRuntime:
    def __init__(
        self,
        questions: Sequence[Question] | None = None,
        *,
        question_time_ms: int = QUESTION_TIME_MS,
        results_pause_ms: int = RESULTS_PAUSE_MS,
        max_players: int = MAX_PLAYERS,
        clock: Callable[[], int] = now_ms,
        session_id_factory: Callable[[], str] = random_session_code,
        participant_id_factory: Callable[[], str] = random_id,
        session_id_max_attempts: int = SESSION_ID_MAX_ATTEMPTS,
    ) -> None:
        self.questions = (
            questions if questions is not None else load_question_bank(settings.question_bank_path)
        )
        self.question_time_ms = question_time_ms
        self.results_pause_ms = results_pause_ms
        self.max_players = max_players
        self._clock = clock
        self._participant_id_factory = participant_id_factory
        self.gateway = WebSocketGateway(on_send_failure=lambda: self._increment_stat("sendFailures"))
        self.registry = SessionRegistry(
            self._build_session,
            id_factory=session_id_factory,
            max_attempts=session_id_max_attempts,
        )
        self.directory = ParticipantDirectory()
        self._ws_stats: dict[str, int] = {
            "connectSuccess": 0,
            "disconnects": 0,
            "activeConnections": 0,
            "peakConnections": 0,
            "messageReceived": 0,
            "rejectedMessages": 0,
            "pingReceived": 0,
            "sendFailures": 0,
            "handlerErrors": 0,
            "sessionsCreated": 0,
            "sessionsTornDown": 0,
        }

    @property
    def active_sessions_count(self) -> int:
        return len(self.registry)

    def _build_session(self, session_id: str, admin_connection_id: str) -> QuizSession:
        return QuizSession(
            session_id,
            admin_connection_id,
            self.questions,
            self.gateway,
            question_time_ms=self.question_time_ms,
            results_pause_ms=self.results_pause_ms,
            max_players=self.max_players,
            clock=self._clock,
            id_factory=self._participant_id_factory,
            on_teardown=self.registry.remove,
        )

    def _increment_stat(self, key: str, amount: int = 1) -> None:
        self._ws_stats[key] = int(self._ws_stats.get(key, 0)) + amount

    def _on_connect(self) -> None:
        self._increment_stat("connectSuccess")
        active_connections = int(self._ws_stats.get("activeConnections", 0)) + 1
        self._ws_stats["activeConnections"] = active_connections
        if active_connections > int(self._ws_stats.get("peakConnections", 0)):
            self._ws_stats["peakConnections"] = active_connections

    def _on_disconnect(self) -> None:
        self._increment_stat("disconnects")
        active_connections = max(0, int(self._ws_stats.get("activeConnections", 0)) - 1)
        self._ws_stats["activeConnections"] = active_connections

    def _log_ws_event(self, event: str, level: int = logging.INFO, **fields: object) -> None:
        logger.log(
            level,
            "ws.%s %s",
            event,
            json.dumps(fields, ensure_ascii=False, separators=(",", ":")),
        )

    def get_ws_stats(self) -> dict[str, Any]:
        session_summaries = [
            {
                "sessionId": session.session_id,
                "players": len(session.players),
                "phase": session.phase,
            }
            for session in self.registry.sessions()
        ]
        session_summaries.sort(key=lambda item: int(item.get("players", 0)), reverse=True)

        return {
            "generatedAt": now_ms(),
            "activeSessions": len(session_summaries),
            "stats": dict(self._ws_stats),
            "sessions": session_summaries[:50],
        }

    def session_snapshot(self, session_id: str) -> dict[str, Any] | None:
        session = self.registry.lookup(session_id)
        if session is None:
            return None
        return session.snapshot()

    async def _send_error(self, connection_id: str, message: str) -> None:
        await self.gateway.publish_to_connection(connection_id, ErrorEvent(message=message))

    async def _teardown_session(self, session: QuizSession, reason: str) -> None:
        async with session.lock:
            if session.is_torn_down:
                return
            await session.teardown(reason)
        self.registry.remove(session.session_id)
        self.directory.release_session(session.session_id)
        self._increment_stat("sessionsTornDown")
        self._log_ws_event("session_ended", sessionId=session.session_id, reason=reason)

    def connect(self, websocket: WebSocket) -> str:
        connection_id = random_id()
        self.gateway.attach(connection_id, websocket)
        self._on_connect()
        return connection_id

    async def dispatch(self, connection_id: str, data: Any) -> None:
        self._increment_stat("messageReceived")
        try:
            command = parse_command(data)
        except ValidationError:
            self._increment_stat("rejectedMessages")
            await self._send_error(connection_id, "Invalid message")
            return

        try:
            await handle_session_message(self, connection_id, command)
        except QuizError as exc:
            self._log_ws_event(
                "command_rejected",
                level=logging.WARNING,
                connectionId=connection_id,
                command=command.type,
                error=type(exc).__name__,
            )
            await self._send_error(connection_id, exc.message)
        except Exception:
            self._increment_stat("handlerErrors")
            logger.exception(
                "Unhandled error for %s from connection %s",
                command.type,
                connection_id,
            )
            await self._send_error(connection_id, "Internal error")

    async def disconnect(
        self,
        connection_id: str,
        reason: str = "unknown",
        close_code: int | None = None,
    ) -> None:
        role = self.directory.release(connection_id)
        self.gateway.detach(connection_id)
        self._on_disconnect()
        self._log_ws_event(
            "disconnect",
            connectionId=connection_id,
            sessionId=role.session_id if role else None,
            wasAdmin=bool(role and role.is_admin),
            reason=reason,
            closeCode=close_code,
        )
        if role is None:
            return

        session = self.registry.lookup(role.session_id)
        if session is None:
            return

        if role.is_admin:
            await self._teardown_session(session, ADMIN_LEFT_MESSAGE)
            return

        if role.participant_id is not None:
            async with session.lock:
                await session.remove_participant(role.participant_id)

    async def shutdown(self) -> None:
        for session in self.registry.sessions():
            await self._teardown_session(session, SERVER_SHUTDOWN_MESSAGE)
        self.registry.clear()
        self._ws_stats["activeConnections"] = 0

    async def handle_websocket(self, websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = self.connect(websocket)
        self._log_ws_event("connect", connectionId=connection_id)

        disconnect_code: int | None = None
        disconnect_reason = "unknown"

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    self._increment_stat("rejectedMessages")
                    await self._send_error(connection_id, "Invalid message")
                    continue
                await self.dispatch(connection_id, data)
        except WebSocketDisconnect as exc:
            disconnect_code = exc.code
            disconnect_reason = "websocket_disconnect"
        except Exception:
            disconnect_reason = "server_error"
            logger.exception("Unexpected websocket error for connection %s", connection_id)
            try:
                await websocket.close(code=1011)
            except Exception as exc:
                logger.debug("Close after error failed for %s: %r", connection_id, exc)
        finally:
            await self.disconnect(
                connection_id,
                reason=disconnect_reason,
                close_code=disconnect_code,
            )


runtime = QuizRuntime()
