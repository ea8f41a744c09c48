from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .runtime_constants import BASE_CORRECT_POINTS, FASTEST_BONUS_POINTS


@dataclass(frozen=True)
class SubmittedAnswer:
    participant_id: str
    selected_index: int | None
    elapsed_ms: int | None


@dataclass(frozen=True)
class AnswerScore:
    participant_id: str
    is_correct: bool
    points: int
    bonus: bool


@dataclass(frozen=True)
class QuestionScoring:
    scores: dict[str, AnswerScore]
    fastest_participant_id: str | None


def score_question(
    correct_index: int,
    option_count: int,
    answers: Iterable[SubmittedAnswer],
) -> QuestionScoring:
    """Score one question.

    Every correct answer earns ``BASE_CORRECT_POINTS``. The correct answer with
    the strictly smallest elapsed time also earns ``FASTEST_BONUS_POINTS``;
    answers are visited in ascending participant id order, so on a tie the
    lowest participant id keeps the bonus. Missing or out-of-range answers are
    scored as incorrect.
    """
    ordered = sorted(answers, key=lambda answer: answer.participant_id)
    correctness: dict[str, bool] = {}
    fastest_participant_id: str | None = None
    fastest_elapsed: int | None = None

    for answer in ordered:
        selected = answer.selected_index
        is_correct = (
            selected is not None
            and 0 <= selected < option_count
            and selected == correct_index
        )
        correctness[answer.participant_id] = is_correct
        if not is_correct:
            continue
        elapsed = max(0, int(answer.elapsed_ms or 0))
        if fastest_elapsed is None or elapsed < fastest_elapsed:
            fastest_elapsed = elapsed
            fastest_participant_id = answer.participant_id

    scores: dict[str, AnswerScore] = {}
    for participant_id, is_correct in correctness.items():
        bonus = participant_id == fastest_participant_id
        points = (BASE_CORRECT_POINTS if is_correct else 0) + (FASTEST_BONUS_POINTS if bonus else 0)
        scores[participant_id] = AnswerScore(
            participant_id=participant_id,
            is_correct=is_correct,
            points=points,
            bonus=bonus,
        )

    return QuestionScoring(scores=scores, fastest_participant_id=fastest_participant_id)
