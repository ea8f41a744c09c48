from __future__ import annotations

import random
import re
import time
import uuid

from .runtime_constants import (
    DEFAULT_PLAYER_NAME,
    PLAYER_NAME_MAX_LENGTH,
    SESSION_CODE_CHARS,
    SESSION_CODE_LENGTH,
)


def now_ms() -> int:
    return int(time.time() * 1000)


def random_id() -> str:
    return str(uuid.uuid4())


def random_session_code(length: int = SESSION_CODE_LENGTH) -> str:
    return "".join(random.choice(SESSION_CODE_CHARS) for _ in range(max(4, length)))


def sanitize_session_id(raw: str | None) -> str:
    value = (raw or "").upper()
    filtered = "".join(ch for ch in value if ch.isalnum())
    return filtered[:8]


def sanitize_player_name(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value:
        return DEFAULT_PLAYER_NAME
    cleaned = re.sub(r"\s+", " ", value)[:PLAYER_NAME_MAX_LENGTH].strip()
    return cleaned or DEFAULT_PLAYER_NAME
