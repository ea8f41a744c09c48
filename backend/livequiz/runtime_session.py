from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Sequence

from .errors import IdentifierExhausted, InvalidTransition, SessionAlreadyStarted, SessionFull
from .runtime_constants import (
    MAX_PLAYERS,
    QUESTION_TIME_MS,
    RESULTS_PAUSE_MS,
    SESSION_ID_MAX_ATTEMPTS,
)
from .runtime_gateway import BroadcastGateway
from .runtime_scoring import SubmittedAnswer, score_question
from .runtime_timers import SessionTimer
from .runtime_types import Participant, Phase, Question
from .runtime_utils import now_ms, random_id, sanitize_player_name
from .schemas.events import (
    JoinedSessionEvent,
    NewQuestionEvent,
    PlayerJoinedEvent,
    PlayerListUpdateEvent,
    PublicQuestion,
    QuestionResult,
    QuestionResultsEvent,
    QuizEndEvent,
    RosterEntry,
    SessionEndedEvent,
)

logger = logging.getLogger(__name__)


class QuizSession:
    """State machine for one running quiz.

    Phases move ``lobby -> question -> results -> question ... -> ended``.
    ``teardown`` is reachable from every phase and is terminal. Callers hold
    ``lock`` while invoking transitions; timer callbacks take it themselves.
    """

    def __init__(
        self,
        session_id: str,
        admin_connection_id: str,
        questions: Sequence[Question],
        gateway: BroadcastGateway,
        *,
        question_time_ms: int = QUESTION_TIME_MS,
        results_pause_ms: int = RESULTS_PAUSE_MS,
        max_players: int = MAX_PLAYERS,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = random_id,
        on_teardown: Callable[[str], None] | None = None,
    ) -> None:
        self.session_id = session_id
        self.admin_connection_id = admin_connection_id
        self.questions = questions
        self.gateway = gateway
        self.question_time_ms = question_time_ms
        self.results_pause_ms = results_pause_ms
        self.max_players = max_players
        self.players: dict[str, Participant] = {}
        self.current_question_index = -1
        self.active = False
        self.phase: Phase = "lobby"
        self.question_started_at: int | None = None
        self.lock = asyncio.Lock()
        self.timer = SessionTimer(session_id, self.lock)
        self._clock = clock
        self._id_factory = id_factory
        self._on_teardown = on_teardown

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def is_torn_down(self) -> bool:
        return self.phase == "torn-down"

    def roster(self) -> list[RosterEntry]:
        return [
            RosterEntry(id=player.participant_id, name=player.name, score=player.score)
            for player in self.players.values()
        ]

    def final_standings(self) -> list[RosterEntry]:
        # sorted() is stable, so equal scores keep join order.
        return sorted(self.roster(), key=lambda entry: entry.score, reverse=True)

    def all_answered(self) -> bool:
        return all(player.has_answered for player in self.players.values())

    def snapshot(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "phase": self.phase,
            "active": self.active,
            "questionNumber": self.current_question_index + 1 if self.current_question else None,
            "totalQuestions": self.total_questions,
            "players": [entry.model_dump() for entry in self.roster()],
        }

    def _next_participant_id(self) -> str:
        for _ in range(SESSION_ID_MAX_ATTEMPTS):
            candidate = self._id_factory()
            if candidate and candidate not in self.players:
                return candidate
        raise IdentifierExhausted("Failed to allocate participant id")

    async def _publish_roster(self, *, notify_admin: bool = False) -> None:
        roster = self.roster()
        if notify_admin:
            await self.gateway.publish_to_connection(
                self.admin_connection_id,
                PlayerJoinedEvent(roster=roster),
            )
        await self.gateway.publish_to_session(self.session_id, PlayerListUpdateEvent(roster=roster))

    async def add_participant(self, name: str, connection_id: str) -> str:
        if self.phase != "lobby":
            raise SessionAlreadyStarted()
        if len(self.players) >= self.max_players:
            raise SessionFull()

        participant_id = self._next_participant_id()
        player = Participant(
            participant_id=participant_id,
            name=sanitize_player_name(name),
            connection_id=connection_id,
        )
        self.players[participant_id] = player
        self.gateway.subscribe(self.session_id, connection_id)

        await self.gateway.publish_to_connection(
            connection_id,
            JoinedSessionEvent(participantId=participant_id, sessionId=self.session_id),
        )
        await self._publish_roster(notify_admin=True)
        logger.info(
            "Player %s (%s) joined session %s",
            player.name,
            participant_id,
            self.session_id,
        )
        return participant_id

    async def start(self) -> None:
        if self.phase != "lobby":
            raise InvalidTransition("Quiz already started")

        self.active = True
        self.current_question_index = 0
        logger.info(
            "Quiz started for session %s with %s players",
            self.session_id,
            len(self.players),
        )
        await self._enter_question()

    async def _enter_question(self) -> None:
        question = self.current_question
        if question is None:
            await self._end()
            return

        for player in self.players.values():
            player.clear_answer()

        self.phase = "question"
        self.question_started_at = self._clock()
        await self.gateway.publish_to_session(
            self.session_id,
            NewQuestionEvent(
                question=PublicQuestion(
                    id=question.id,
                    question=question.text,
                    options=list(question.options),
                ),
                questionNumber=self.current_question_index + 1,
                totalQuestions=self.total_questions,
            ),
        )
        self.timer.arm("question", self.question_time_ms, self.settle)

    async def submit_answer(self, participant_id: str, option_index: int | None) -> bool:
        if self.phase != "question":
            raise InvalidTransition("No question is open")

        player = self.players.get(participant_id)
        if player is None or player.has_answered:
            return False

        player.current_answer = option_index
        player.has_answered = True
        player.answered_at = self._clock()

        if self.all_answered():
            self.timer.cancel()
            await self.settle()
        return True

    async def settle(self) -> None:
        if self.phase != "question":
            return
        question = self.current_question
        if question is None:
            return

        self.timer.cancel()
        started_at = self.question_started_at or self._clock()
        scoring = score_question(
            question.correct_index,
            len(question.options),
            (
                SubmittedAnswer(
                    participant_id=player.participant_id,
                    selected_index=player.current_answer if player.has_answered else None,
                    elapsed_ms=(
                        player.answered_at - started_at if player.answered_at is not None else None
                    ),
                )
                for player in self.players.values()
            ),
        )

        results: list[QuestionResult] = []
        for player in self.players.values():
            outcome = scoring.scores[player.participant_id]
            player.score += outcome.points
            results.append(
                QuestionResult(
                    participantId=player.participant_id,
                    name=player.name,
                    submittedAnswer=player.current_answer if player.has_answered else None,
                    isCorrect=outcome.is_correct,
                    pointsAwarded=outcome.points,
                    score=player.score,
                    bonus=outcome.bonus,
                )
            )

        self.phase = "results"
        await self.gateway.publish_to_session(
            self.session_id,
            QuestionResultsEvent(
                results=results,
                correctAnswer=question.correct_index,
                questionText=question.text,
            ),
        )
        self.timer.arm("results", self.results_pause_ms, self.advance)

    async def advance(self) -> None:
        if self.phase != "results":
            return
        self.current_question_index += 1
        await self._enter_question()

    async def _end(self) -> None:
        self.timer.cancel()
        self.phase = "ended"
        self.active = False
        self.question_started_at = None
        standings = self.final_standings()
        await self.gateway.publish_to_session(
            self.session_id,
            QuizEndEvent(finalStandings=standings),
        )
        logger.info("Quiz finished for session %s", self.session_id)

    async def remove_participant(self, participant_id: str) -> bool:
        if self.is_torn_down:
            return False
        player = self.players.pop(participant_id, None)
        if player is None:
            return False

        self.gateway.unsubscribe(self.session_id, player.connection_id)
        await self._publish_roster()
        logger.info("Player %s left session %s", participant_id, self.session_id)

        if self.phase == "question" and self.all_answered():
            await self.settle()
        return True

    async def teardown(self, reason: str) -> None:
        if self.is_torn_down:
            return

        self.timer.cancel()
        self.active = False
        self.phase = "torn-down"
        await self.gateway.publish_to_session(self.session_id, SessionEndedEvent(message=reason))
        self.gateway.close_session(self.session_id)
        if self._on_teardown is not None:
            self._on_teardown(self.session_id)
        logger.info("Session %s torn down: %s", self.session_id, reason)
