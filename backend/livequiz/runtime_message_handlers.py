from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import AlreadyBound, InvalidTransition, SessionNotFound
from .runtime_constants import ADMIN_ENDED_MESSAGE
from .runtime_types import ConnectionRole
from .runtime_utils import now_ms, sanitize_session_id
from .schemas.events import (
    Command,
    CreateSessionCommand,
    EndSessionCommand,
    JoinSessionCommand,
    PingCommand,
    PongEvent,
    SessionCreatedEvent,
    StartQuizCommand,
    SubmitAnswerCommand,
)

if TYPE_CHECKING:
    from .runtime import QuizRuntime

logger = logging.getLogger(__name__)


async def handle_message(
    runtime: "QuizRuntime",
    connection_id: str,
    command: Command,
) -> None:
    if isinstance(command, PingCommand):
        runtime._increment_stat("pingReceived")
        await runtime.gateway.publish_to_connection(connection_id, PongEvent(serverTime=now_ms()))
        return

    if isinstance(command, CreateSessionCommand):
        await create_session(runtime, connection_id)
        return

    if isinstance(command, JoinSessionCommand):
        await join_session(runtime, connection_id, command.sessionId, command.playerName)
        return

    if isinstance(command, StartQuizCommand):
        await start_quiz(runtime, connection_id)
        return

    if isinstance(command, SubmitAnswerCommand):
        await submit_answer(runtime, connection_id, command.answerIndex)
        return

    if isinstance(command, EndSessionCommand):
        await end_session(runtime, connection_id)
        return


async def create_session(runtime: "QuizRuntime", connection_id: str) -> str:
    if runtime.directory.resolve(connection_id) is not None:
        raise AlreadyBound()

    session_id = runtime.registry.create_session(connection_id)
    runtime.directory.bind(connection_id, ConnectionRole(session_id=session_id, is_admin=True))
    runtime.gateway.subscribe(session_id, connection_id)
    runtime._increment_stat("sessionsCreated")
    await runtime.gateway.publish_to_connection(
        connection_id,
        SessionCreatedEvent(sessionId=session_id),
    )
    runtime._log_ws_event("session_created", sessionId=session_id, connectionId=connection_id)
    return session_id


async def join_session(
    runtime: "QuizRuntime",
    connection_id: str,
    session_id: str,
    player_name: str,
) -> str:
    if runtime.directory.resolve(connection_id) is not None:
        raise AlreadyBound()

    session_id = sanitize_session_id(session_id)
    session = runtime.registry.lookup(session_id)
    if session is None:
        raise SessionNotFound()

    async with session.lock:
        if session.is_torn_down:
            raise SessionNotFound()
        participant_id = await session.add_participant(player_name, connection_id)
        runtime.directory.bind(
            connection_id,
            ConnectionRole(session_id=session_id, is_admin=False, participant_id=participant_id),
        )

    runtime._log_ws_event(
        "session_joined",
        sessionId=session_id,
        connectionId=connection_id,
        participantId=participant_id,
    )
    return participant_id


async def start_quiz(runtime: "QuizRuntime", connection_id: str) -> None:
    role = runtime.directory.resolve(connection_id)
    if role is None or not role.is_admin:
        return

    session = runtime.registry.lookup(role.session_id)
    if session is None:
        return

    async with session.lock:
        try:
            await session.start()
        except InvalidTransition as exc:
            logger.debug("Ignored startQuiz for session %s: %s", session.session_id, exc.message)


async def submit_answer(
    runtime: "QuizRuntime",
    connection_id: str,
    answer_index: int | None,
) -> None:
    role = runtime.directory.resolve(connection_id)
    if role is None or role.is_admin or role.participant_id is None:
        return

    session = runtime.registry.lookup(role.session_id)
    if session is None or not session.active:
        return

    async with session.lock:
        try:
            accepted = await session.submit_answer(role.participant_id, answer_index)
        except InvalidTransition:
            return
    if accepted:
        logger.debug(
            "Player %s submitted answer %s in session %s",
            role.participant_id,
            answer_index,
            role.session_id,
        )


async def end_session(runtime: "QuizRuntime", connection_id: str) -> None:
    role = runtime.directory.resolve(connection_id)
    if role is None or not role.is_admin:
        return

    session = runtime.registry.lookup(role.session_id)
    if session is None:
        return

    await runtime._teardown_session(session, ADMIN_ENDED_MESSAGE)
