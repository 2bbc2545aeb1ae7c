"""
MCQ grading and module state derivation.
Pure functions: no database access, same inputs always give the same result.
"""

from typing import Iterable, List, Optional

from lms.progression.models import ModuleState

ANSWER_FIELDS = ("correct", "is_correct", "correct_answer", "answer")


def count_correct(responses: Iterable[dict], answer_keys: List[dict]) -> int:
    """Responses matched to keys by question id; unknown question ids never count"""
    key_by_question = {k["question_id"]: k["correct_answer"] for k in answer_keys}
    correct = 0
    for response in responses:
        expected = key_by_question.get(response.get("question_id"))
        if expected is not None and response.get("answer") == expected:
            correct += 1
    return correct


def score(responses: Iterable[dict], answer_keys: List[dict]) -> float:
    """
    Percentage of answer keys matched, in [0, 100].
    An MCQ without answer keys scores 0 and can never be passed.
    """
    total = len(answer_keys)
    if total == 0:
        return 0.0
    return count_correct(responses, answer_keys) / total * 100


def is_passed(percentage: float, passing_score: int) -> bool:
    return percentage >= passing_score


def grade(responses: List[dict], answer_keys: List[dict], passing_score: int) -> dict:
    correct = count_correct(responses, answer_keys)
    percentage = score(responses, answer_keys)
    return {
        "score": percentage,
        "passed": len(answer_keys) > 0 and is_passed(percentage, passing_score),
        "correct": correct,
        "total": len(answer_keys),
    }


def strip_answers(questions: List[dict]) -> List[dict]:
    """Copy of the question set with every correct-answer marker removed"""
    stripped = []
    for q in questions:
        clean = {k: v for k, v in q.items() if k not in ANSWER_FIELDS}
        clean["options"] = [
            {k: v for k, v in opt.items() if k not in ANSWER_FIELDS}
            for opt in q.get("options", [])
        ]
        stripped.append(clean)
    return stripped


def derive_module_state(
    unlocked: bool,
    days_completed: int,
    total_days: int,
    passed: Optional[bool],
) -> ModuleState:
    """
    Collapse the progression facts of one (student, module) pair into a state.

    `passed` is None when there is no live MCQ attempt. A module whose MCQ
    has not been authored yet also has no attempt, so once its days are done
    it stays AWAITING_MCQ and the next module stays locked until an MCQ
    exists and is passed.
    """
    if not unlocked:
        return ModuleState.LOCKED
    if passed is True:
        return ModuleState.PASSED
    if passed is False:
        return ModuleState.FAILED
    if days_completed >= total_days:
        return ModuleState.AWAITING_MCQ
    if days_completed > 0:
        return ModuleState.IN_PROGRESS
    return ModuleState.UNLOCKED
