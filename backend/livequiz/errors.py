from __future__ import annotations


class QuizError(Exception):
    """Base class for failures reported back to the originating connection."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(QuizError):
    default_message = "Not found"


class SessionNotFound(NotFound):
    default_message = "Session not found"


class InvalidTransition(QuizError):
    default_message = "Action not allowed right now"


class SessionAlreadyStarted(InvalidTransition):
    default_message = "Quiz already in progress"


class SessionFull(InvalidTransition):
    default_message = "Session is full"


class AlreadyBound(InvalidTransition):
    default_message = "Already in a session"


class ResourceExhaustion(QuizError):
    default_message = "Server is out of resources"


class IdentifierExhausted(ResourceExhaustion):
    default_message = "Failed to allocate session code"
