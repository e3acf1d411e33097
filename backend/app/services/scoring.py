"""Answer checking and final score computation."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from app.common.clock import seconds_between
from app.models.quiz import QuestionFormat


def _strict_equal(selected: Any, correct: Any) -> bool:
    # bool is an int subclass; True must not match 1
    if isinstance(selected, bool) != isinstance(correct, bool):
        return False
    return selected == correct


def _matching_pairs(value: Any) -> list[tuple[Any, Any]] | None:
    """Normalize a matching answer to a list of (left, right) pairs.

    Accepts ``{"left": "right"}`` mappings or ``[["left", "right"], ...]`` /
    ``[{"left": ..., "right": ...}, ...]`` lists. Returns None if the value is
    not shaped like a matching answer.
    """
    if isinstance(value, Mapping):
        items: Iterable[Any] = value.items()
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return None

    pairs = []
    for item in items:
        if isinstance(item, Mapping):
            if "left" not in item or "right" not in item:
                return None
            item = (item["left"], item["right"])
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            return None
        pairs.append((item[0], item[1]))
    return pairs


def _same_pairs(selected: list[tuple[Any, Any]], correct: list[tuple[Any, Any]]) -> bool:
    """Order-independent pair comparison; values are compared without coercion."""
    if len(selected) != len(correct):
        return False
    remaining = list(correct)
    for left, right in selected:
        for position, (key_left, key_right) in enumerate(remaining):
            if _strict_equal(left, key_left) and _strict_equal(right, key_right):
                del remaining[position]
                break
        else:
            return False
    return True


def check_answer(question_format: QuestionFormat, selected: Any, correct: Any) -> bool:
    """
    Compare a submitted value against the answer key for its question format.

    multiple_choice / true_false: exact match.
    matching: same set of pairs regardless of order or container shape.
    """
    if selected is None or correct is None:
        return False

    if question_format in (QuestionFormat.MULTIPLE_CHOICE, QuestionFormat.TRUE_FALSE):
        return _strict_equal(selected, correct)

    if question_format == QuestionFormat.MATCHING:
        selected_pairs = _matching_pairs(selected)
        correct_pairs = _matching_pairs(correct)
        if selected_pairs is None or correct_pairs is None:
            return False
        return _same_pairs(selected_pairs, correct_pairs)

    return False


def compute_score(entries: Iterable[Any], points_by_question: Mapping[str, int]) -> int:
    """Sum the points of every correctly answered, non-skipped entry."""
    score = 0
    for entry in entries:
        if entry.skipped or entry.selected_answer is None or entry.is_correct is not True:
            continue
        score += points_by_question.get(entry.question_id, 0)
    return score


def time_taken_seconds(start_time: datetime | None, end_time: datetime) -> int:
    """Wall-clock seconds between start and completion (pauses included)."""
    return seconds_between(start_time, end_time)
