from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    def __init__(self) -> None:
        self.host = os.getenv("HOST", "0.0.0.0").strip() or "0.0.0.0"
        self.ws_port = int(os.getenv("WS_PORT", "3001"))
        self.reload = os.getenv("RELOAD", "0").strip().lower() in {"1", "true", "yes"}
        self.question_time_ms = max(
            100,
            int(os.getenv("QUESTION_TIME_MS", "10000")),
        )
        self.results_pause_ms = max(
            0,
            int(os.getenv("RESULTS_PAUSE_MS", "3000")),
        )
        self.session_code_length = min(
            8,
            max(4, int(os.getenv("SESSION_CODE_LENGTH", "6"))),
        )
        self.session_id_max_attempts = max(
            1,
            int(os.getenv("SESSION_ID_MAX_ATTEMPTS", "24")),
        )
        self.max_players = max(1, int(os.getenv("MAX_PLAYERS", "50")))
        self.question_bank_path = os.getenv("QUESTION_BANK_PATH", "").strip() or None
        raw_origins = os.getenv("CORS_ORIGINS", "*").strip()
        self.cors_origins = [
            origin.strip() for origin in raw_origins.split(",") if origin.strip()
        ] or ["*"]
        self.log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


settings = Settings()
