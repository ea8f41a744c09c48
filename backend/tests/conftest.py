from __future__ import annotations

import itertools
from typing import Any

import pytest
import pytest_asyncio

from livequiz.question_bank import QuestionBank, load_question_bank
from livequiz.runtime_session import QuizSession
from livequiz.runtime_types import Question
from livequiz.schemas.events import OutboundEvent


class RecordingGateway:
    """In-memory gateway that records every published event."""

    def __init__(self) -> None:
        self.session_events: list[tuple[str, OutboundEvent]] = []
        self.connection_events: list[tuple[str, OutboundEvent]] = []
        self.members: dict[str, set[str]] = {}
        self.closed_sessions: list[str] = []

    async def publish_to_session(self, session_id: str, event: OutboundEvent) -> None:
        self.session_events.append((session_id, event))

    async def publish_to_connection(self, connection_id: str, event: OutboundEvent) -> None:
        self.connection_events.append((connection_id, event))

    def subscribe(self, session_id: str, connection_id: str) -> None:
        self.members.setdefault(session_id, set()).add(connection_id)

    def unsubscribe(self, session_id: str, connection_id: str) -> None:
        self.members.get(session_id, set()).discard(connection_id)

    def close_session(self, session_id: str) -> None:
        self.members.pop(session_id, None)
        self.closed_sessions.append(session_id)

    def broadcasts(self, event_type: str) -> list[Any]:
        return [event for _, event in self.session_events if event.type == event_type]

    def sent_to(self, connection_id: str, event_type: str | None = None) -> list[Any]:
        return [
            event
            for target, event in self.connection_events
            if target == connection_id and (event_type is None or event.type == event_type)
        ]


class FakeClock:
    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class MockWebSocket:
    """Lightweight stand-in for fastapi.WebSocket."""

    def __init__(self) -> None:
        self.sent_messages: list[dict[str, Any]] = []
        self.fail_sends = False

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail_sends:
            raise RuntimeError("socket closed")
        self.sent_messages.append(data)

    def last(self, msg_type: str) -> dict[str, Any] | None:
        for msg in reversed(self.sent_messages):
            if msg.get("type") == msg_type:
                return msg
        return None

    def all(self, msg_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent_messages if m.get("type") == msg_type]


def sequential_ids(prefix: str = "p"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def questions() -> QuestionBank:
    return load_question_bank()


@pytest_asyncio.fixture
async def make_session(gateway, clock, questions):
    created: list[QuizSession] = []

    def factory(**overrides: Any) -> QuizSession:
        options: dict[str, Any] = {
            "question_time_ms": 10_000,
            "results_pause_ms": 3_000,
            "clock": clock,
            "id_factory": sequential_ids(),
        }
        options.update(overrides)
        bank = options.pop("questions", questions)
        session = QuizSession("ROOM01", "admin-conn", bank, gateway, **options)
        created.append(session)
        return session

    yield factory

    for session in created:
        session.timer.cancel()


def make_question(question_id: int, correct_index: int = 0, option_count: int = 4) -> Question:
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        options=tuple(f"Option {i}" for i in range(option_count)),
        correct_index=correct_index,
    )
