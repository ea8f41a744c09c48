from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class InboundCommand(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CreateSessionCommand(InboundCommand):
    type: Literal["createSession"]


class JoinSessionCommand(InboundCommand):
    type: Literal["joinSession"]
    sessionId: str = Field(min_length=1, max_length=16)
    playerName: str = ""

    @field_validator("sessionId")
    @classmethod
    def normalize_session_id(cls, value: str) -> str:
        return value.strip().upper()


class StartQuizCommand(InboundCommand):
    type: Literal["startQuiz"]


class SubmitAnswerCommand(InboundCommand):
    type: Literal["submitAnswer"]
    answerIndex: int | None = None


class EndSessionCommand(InboundCommand):
    type: Literal["endSession"]


class PingCommand(InboundCommand):
    type: Literal["ping"]


Command = Annotated[
    Union[
        CreateSessionCommand,
        JoinSessionCommand,
        StartQuizCommand,
        SubmitAnswerCommand,
        EndSessionCommand,
        PingCommand,
    ],
    Field(discriminator="type"),
]

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(data: Any) -> Command:
    return command_adapter.validate_python(data)


class OutboundEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RosterEntry(BaseModel):
    id: str
    name: str
    score: int


class PublicQuestion(BaseModel):
    id: int
    question: str
    options: list[str]


class QuestionResult(BaseModel):
    participantId: str
    name: str
    submittedAnswer: int | None
    isCorrect: bool
    pointsAwarded: int
    score: int
    bonus: bool = False


class SessionCreatedEvent(OutboundEvent):
    type: Literal["sessionCreated"] = "sessionCreated"
    sessionId: str


class JoinedSessionEvent(OutboundEvent):
    type: Literal["joinedSession"] = "joinedSession"
    participantId: str
    sessionId: str


class PlayerListUpdateEvent(OutboundEvent):
    type: Literal["playerListUpdate"] = "playerListUpdate"
    roster: list[RosterEntry]


class PlayerJoinedEvent(OutboundEvent):
    type: Literal["playerJoined"] = "playerJoined"
    roster: list[RosterEntry]


class NewQuestionEvent(OutboundEvent):
    type: Literal["newQuestion"] = "newQuestion"
    question: PublicQuestion
    questionNumber: int
    totalQuestions: int


class QuestionResultsEvent(OutboundEvent):
    type: Literal["questionResults"] = "questionResults"
    results: list[QuestionResult]
    correctAnswer: int
    questionText: str


class QuizEndEvent(OutboundEvent):
    type: Literal["quizEnd"] = "quizEnd"
    finalStandings: list[RosterEntry]


class SessionEndedEvent(OutboundEvent):
    type: Literal["sessionEnded"] = "sessionEnded"
    message: str


class ErrorEvent(OutboundEvent):
    type: Literal["error"] = "error"
    message: str


class PongEvent(OutboundEvent):
    type: Literal["pong"] = "pong"
    serverTime: int
