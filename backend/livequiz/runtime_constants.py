from __future__ import annotations

from .config import settings

MAX_PLAYERS = settings.max_players
QUESTION_TIME_MS = settings.question_time_ms
RESULTS_PAUSE_MS = settings.results_pause_ms
SESSION_CODE_LENGTH = settings.session_code_length
SESSION_ID_MAX_ATTEMPTS = settings.session_id_max_attempts
BASE_CORRECT_POINTS = 10
FASTEST_BONUS_POINTS = 5
PLAYER_NAME_MAX_LENGTH = 24
DEFAULT_PLAYER_NAME = "Player"
SESSION_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ADMIN_LEFT_MESSAGE = "Admin left the session"
ADMIN_ENDED_MESSAGE = "Admin ended the session"
SERVER_SHUTDOWN_MESSAGE = "Server is shutting down"

DEFAULT_QUESTIONS: tuple[dict[str, object], ...] = (
    {
        "id": 1,
        "text": "What is the capital of France?",
        "options": ["London", "Berlin", "Paris", "Madrid"],
        "correctIndex": 2,
    },
    {
        "id": 2,
        "text": "Which planet is known as the Red Planet?",
        "options": ["Venus", "Mars", "Jupiter", "Saturn"],
        "correctIndex": 1,
    },
    {
        "id": 3,
        "text": "What is 2 + 2?",
        "options": ["3", "4", "5", "6"],
        "correctIndex": 1,
    },
    {
        "id": 4,
        "text": "Which language runs in web browsers?",
        "options": ["Java", "Python", "JavaScript", "C++"],
        "correctIndex": 2,
    },
    {
        "id": 5,
        "text": "What does HTML stand for?",
        "options": [
            "Hyper Text Markup Language",
            "High Tech Modern Language",
            "Hyper Transfer Markup Language",
            "Home Tool Markup Language",
        ],
        "correctIndex": 0,
    },
)
