from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from .runtime_constants import DEFAULT_QUESTIONS
from .runtime_types import Question

logger = logging.getLogger(__name__)


def _sanitize_question_entry(raw: Any, fallback_id: int) -> Question | None:
    if not isinstance(raw, dict):
        return None

    text = str(raw.get("text") or raw.get("question") or "").strip()
    options_raw = raw.get("options")
    if not text or not isinstance(options_raw, list):
        return None

    options = [str(option).strip() for option in options_raw if str(option).strip()]
    if len(options) < 2:
        return None

    raw_correct = raw.get("correctIndex", raw.get("correctAnswer"))
    try:
        correct_index = int(raw_correct)
    except (TypeError, ValueError):
        return None

    if correct_index < 0 or correct_index >= len(options):
        return None

    try:
        question_id = int(raw.get("id", fallback_id))
    except (TypeError, ValueError):
        question_id = fallback_id

    return Question(
        id=question_id,
        text=text[:300],
        options=tuple(options),
        correct_index=correct_index,
    )


class QuestionBank(Sequence[Question]):
    """Ordered, read-only question sequence shared by every session."""

    def __init__(self, questions: Iterable[Question]) -> None:
        self._questions: tuple[Question, ...] = tuple(questions)
        if not self._questions:
            raise ValueError("Question bank must contain at least one question")

    def __len__(self) -> int:
        return len(self._questions)

    def __getitem__(self, index):  # type: ignore[override]
        return self._questions[index]

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    @classmethod
    def from_entries(cls, entries: Iterable[Any]) -> "QuestionBank":
        questions = [
            question
            for question in (
                _sanitize_question_entry(item, index + 1) for index, item in enumerate(entries)
            )
            if question is not None
        ]
        return cls(questions)


def load_question_bank(path: str | Path | None = None) -> QuestionBank:
    if path is None:
        return QuestionBank.from_entries(DEFAULT_QUESTIONS)

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    entries = payload.get("questions") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise RuntimeError(f"{path} must contain a list of questions")

    bank = QuestionBank.from_entries(entries)
    skipped = len(entries) - len(bank)
    if skipped:
        logger.warning("Skipped %s invalid question entries from %s", skipped, path)
    logger.info("Loaded %s questions from %s", len(bank), path)
    return bank
