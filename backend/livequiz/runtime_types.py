from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Phase = Literal[
    "lobby",
    "question",
    "results",
    "ended",
    "torn-down",
]


@dataclass(frozen=True)
class Question:
    id: int
    text: str
    options: tuple[str, ...]
    correct_index: int

    def __post_init__(self) -> None:
        if len(self.options) < 2:
            raise ValueError(f"Question {self.id} needs at least two options")
        if self.correct_index < 0 or self.correct_index >= len(self.options):
            raise ValueError(f"Question {self.id} has an invalid correct option index")


@dataclass
class Participant:
    participant_id: str
    name: str
    connection_id: str
    score: int = 0
    current_answer: int | None = None
    has_answered: bool = False
    answered_at: int | None = None

    def clear_answer(self) -> None:
        self.current_answer = None
        self.has_answered = False
        self.answered_at = None


@dataclass(frozen=True)
class ConnectionRole:
    session_id: str
    is_admin: bool
    participant_id: str | None = None
