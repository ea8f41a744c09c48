from __future__ import annotations

import logging
from typing import Callable

from .errors import AlreadyBound, IdentifierExhausted
from .runtime_constants import SESSION_ID_MAX_ATTEMPTS
from .runtime_session import QuizSession
from .runtime_types import ConnectionRole
from .runtime_utils import random_session_code

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str, str], QuizSession]


class SessionRegistry:
    """Owns every live session, keyed by session id."""

    def __init__(
        self,
        session_factory: SessionFactory,
        id_factory: Callable[[], str] = random_session_code,
        max_attempts: int = SESSION_ID_MAX_ATTEMPTS,
    ) -> None:
        self._sessions: dict[str, QuizSession] = {}
        self._session_factory = session_factory
        self._id_factory = id_factory
        self._max_attempts = max(1, max_attempts)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create_session(self, admin_connection_id: str) -> str:
        for _ in range(self._max_attempts):
            session_id = self._id_factory()
            if not session_id or session_id in self._sessions:
                continue
            self._sessions[session_id] = self._session_factory(session_id, admin_connection_id)
            logger.info("Session created: %s", session_id)
            return session_id

        logger.error(
            "Failed to allocate session code after %s attempts (%s live sessions)",
            self._max_attempts,
            len(self._sessions),
        )
        raise IdentifierExhausted()

    def lookup(self, session_id: str) -> QuizSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def sessions(self) -> list[QuizSession]:
        return list(self._sessions.values())

    def clear(self) -> list[QuizSession]:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions


class ParticipantDirectory:
    """Routes a connection to its session and role. Never owns sessions."""

    def __init__(self) -> None:
        self._roles: dict[str, ConnectionRole] = {}

    def __len__(self) -> int:
        return len(self._roles)

    def bind(self, connection_id: str, role: ConnectionRole) -> None:
        if connection_id in self._roles:
            raise AlreadyBound()
        self._roles[connection_id] = role

    def resolve(self, connection_id: str) -> ConnectionRole | None:
        return self._roles.get(connection_id)

    def release(self, connection_id: str) -> ConnectionRole | None:
        return self._roles.pop(connection_id, None)

    def release_session(self, session_id: str) -> list[str]:
        released = [
            connection_id
            for connection_id, role in self._roles.items()
            if role.session_id == session_id
        ]
        for connection_id in released:
            self._roles.pop(connection_id, None)
        return released
