"""
Course progression engine

Decides, per (student, module):
- whether the module is unlocked (previous module's MCQ passed)
- whether its days are completed and its MCQ attempted
- how an MCQ attempt is graded, retaken and reviewed

Every decision re-reads the store; nothing is cached between calls.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from lms.progression.audit import generate_id, log_progress_audit
from lms.progression.errors import (
    AlreadyAttempted, AlreadyPassed, DaysIncomplete, InvalidResponseCount, Locked, NotFound
)
from lms.progression.models import (
    COURSES, MODULES, DAY_CONTENTS, DAY_COMPLETIONS, MODULE_MCQS, MCQ_ANSWERS, MCQ_RESPONSES,
    ModuleMCQResponse, ModuleState,
)
from lms.progression.scoring import derive_module_state, grade, strip_answers
from lms.progression.store import RecordStore

logger = logging.getLogger(__name__)

# ==================== LOOKUPS ====================

async def get_module_or_404(store: RecordStore, module_id: str) -> dict:
    module = await store.find_one(MODULES, {"module_id": module_id})
    if not module:
        raise NotFound("Module not found")
    return module

async def get_mcq_for_module(store: RecordStore, module_id: str) -> Optional[dict]:
    return await store.find_one(MODULE_MCQS, {"module_id": module_id})

async def get_mcq_or_404(store: RecordStore, module_id: str) -> dict:
    mcq = await get_mcq_for_module(store, module_id)
    if not mcq:
        raise NotFound("MCQ not found for this module")
    return mcq

async def get_answer_keys(store: RecordStore, mcq_id: str) -> List[dict]:
    """Answer keys in creation order; the order submitted answers are matched against"""
    return await store.find_many(
        MCQ_ANSWERS, {"mcq_id": mcq_id}, sort=[("created_at", 1), ("question_id", 1)]
    )

async def get_live_response(store: RecordStore, student_id: str, mcq_id: str) -> Optional[dict]:
    return await store.find_one(MCQ_RESPONSES, {"mcq_id": mcq_id, "student_id": student_id})

async def get_module_days(store: RecordStore, module_id: str) -> List[dict]:
    return await store.find_many(DAY_CONTENTS, {"module_id": module_id}, sort=[("day_number", 1)])

async def grade_live_attempt(store: RecordStore, student_id: str, mcq: dict) -> Optional[dict]:
    """Grade of the student's live attempt, or None if there is none"""
    response = await get_live_response(store, student_id, mcq["mcq_id"])
    if not response:
        return None
    keys = await get_answer_keys(store, mcq["mcq_id"])
    return grade(response["responses"], keys, mcq["passing_score"])

# ==================== UNLOCK EVALUATOR ====================

async def is_module_unlocked(store: RecordStore, student_id: str, module: dict) -> bool:
    """
    First module is always open. Any other module opens only when the student
    passed the MCQ of the module right before it; every missing link fails closed.
    """
    if module["order"] == 1:
        return True

    previous_module = await store.find_one(MODULES, {
        "course_id": module["course_id"],
        "order": module["order"] - 1
    })
    if not previous_module:
        return False

    previous_mcq = await get_mcq_for_module(store, previous_module["module_id"])
    if not previous_mcq:
        return False

    result = await grade_live_attempt(store, student_id, previous_mcq)
    if result is None:
        return False

    return result["passed"]

async def require_unlocked(store: RecordStore, student_id: str, module: dict):
    if not await is_module_unlocked(store, student_id, module):
        logger.info("Blocked access to locked module %s for %s", module["module_id"], student_id)
        raise Locked()

# ==================== COMPLETION EVALUATOR ====================

async def are_all_days_completed(store: RecordStore, student_id: str, module: dict) -> bool:
    days = await get_module_days(store, module["module_id"])
    for day in days:
        completion = await store.find_one(DAY_COMPLETIONS, {
            "student_id": student_id,
            "day_id": day["day_id"]
        })
        if not completion or not completion.get("completed"):
            return False
    return True

async def mcq_attempted(store: RecordStore, student_id: str, module: dict) -> bool:
    """Attempted means a live response exists; pass/fail does not matter"""
    mcq = await get_mcq_for_module(store, module["module_id"])
    if not mcq:
        return False
    return await get_live_response(store, student_id, mcq["mcq_id"]) is not None

async def module_fully_completed(store: RecordStore, student_id: str, module: dict) -> bool:
    return (
        await are_all_days_completed(store, student_id, module)
        and await mcq_attempted(store, student_id, module)
    )

async def mark_day_completed(store: RecordStore, student_id: str, day_id: str) -> dict:
    """
    Idempotent: the completion row is upserted on (student_id, day_id),
    so repeated calls leave exactly one row with completed=True.
    """
    day = await store.find_one(DAY_CONTENTS, {"day_id": day_id})
    if not day:
        raise NotFound("Day content not found")

    module = await get_module_or_404(store, day["module_id"])
    await require_unlocked(store, student_id, module)

    await store.upsert(
        DAY_COMPLETIONS,
        {"student_id": student_id, "day_id": day_id},
        {"completed": True, "completed_at": datetime.utcnow()}
    )

    await log_progress_audit(
        store, student_id, "day_completed",
        module_id=module["module_id"], metadata={"day_id": day_id}
    )
    logger.info("Day %s completed by %s", day_id, student_id)

    return {"message": "Day marked as completed"}

# ==================== MODULE STATE ====================

async def collect_module_facts(store: RecordStore, student_id: str, module: dict) -> dict:
    """Everything the student-facing module views are computed from"""
    unlocked = await is_module_unlocked(store, student_id, module)
    days = await get_module_days(store, module["module_id"])

    completions = await store.find_many(DAY_COMPLETIONS, {
        "student_id": student_id,
        "day_id": {"$in": [d["day_id"] for d in days]}
    })
    completed_ids = {c["day_id"] for c in completions if c.get("completed")}

    mcq = await get_mcq_for_module(store, module["module_id"])
    result = await grade_live_attempt(store, student_id, mcq) if mcq else None

    all_days_completed = len(completed_ids) == len(days)
    passed = result["passed"] if result else None

    return {
        "unlocked": unlocked,
        "days": days,
        "completed_ids": completed_ids,
        "all_days_completed": all_days_completed,
        "mcq": mcq,
        "result": result,
        "state": derive_module_state(unlocked, len(completed_ids), len(days), passed),
    }

async def get_module_state(store: RecordStore, student_id: str, module: dict) -> ModuleState:
    facts = await collect_module_facts(store, student_id, module)
    return facts["state"]

# ==================== MCQ ====================

async def submit_mcq_responses(
    store: RecordStore,
    student_id: str,
    module_id: str,
    answers: List[str]
) -> dict:
    """
    One-shot submission. Answers are positional: answers[i] is matched to the
    i-th answer key. Every check runs before the single write.
    """
    module = await get_module_or_404(store, module_id)
    mcq = await get_mcq_or_404(store, module_id)
    await require_unlocked(store, student_id, module)

    if await get_live_response(store, student_id, mcq["mcq_id"]):
        raise AlreadyAttempted()

    keys = await get_answer_keys(store, mcq["mcq_id"])
    if len(answers) != len(keys):
        raise InvalidResponseCount(
            f"Expected {len(keys)} responses, received {len(answers)}"
        )

    items = [
        {"question_id": key["question_id"], "answer": answer}
        for key, answer in zip(keys, answers)
    ]
    response = ModuleMCQResponse(
        response_id=generate_id("RESP"),
        mcq_id=mcq["mcq_id"],
        student_id=student_id,
        responses=items,
        submitted_at=datetime.utcnow()
    )

    try:
        await store.create(MCQ_RESPONSES, response.dict())
    except DuplicateKeyError:
        # concurrent submission won the unique index
        raise AlreadyAttempted()

    result = grade(items, keys, mcq["passing_score"])

    await log_progress_audit(
        store, student_id, "mcq_submitted",
        module_id=module_id, metadata={"score": result["score"], "passed": result["passed"]}
    )
    logger.info(
        "MCQ %s submitted by %s: %.1f%% (%s)",
        mcq["mcq_id"], student_id, result["score"], "passed" if result["passed"] else "failed"
    )

    return result

async def retake_status(store: RecordStore, student_id: str, module_id: str) -> dict:
    await get_module_or_404(store, module_id)
    mcq = await get_mcq_or_404(store, module_id)

    result = await grade_live_attempt(store, student_id, mcq)
    if result is None:
        return {
            "can_take": True,
            "can_retake": False,
            "has_attempted": False,
            "has_passed": False,
            "score": None,
            "passing_score": mcq["passing_score"],
        }

    return {
        "can_take": False,
        "can_retake": not result["passed"],
        "has_attempted": True,
        "has_passed": result["passed"],
        "score": result["score"],
        "passing_score": mcq["passing_score"],
    }

async def fetch_mcq_for_student(store: RecordStore, student_id: str, module_id: str) -> dict:
    """
    Question set without answers.

    A passed attempt blocks the fetch. A failed attempt is deleted here so the
    student gets one fresh live attempt; only the latest outcome is kept.
    """
    module = await get_module_or_404(store, module_id)
    await require_unlocked(store, student_id, module)

    mcq = await get_mcq_for_module(store, module_id)
    response = await get_live_response(store, student_id, mcq["mcq_id"]) if mcq else None

    # a pass stands even if days were added to the module afterwards
    result = None
    if response:
        keys = await get_answer_keys(store, mcq["mcq_id"])
        result = grade(response["responses"], keys, mcq["passing_score"])
        if result["passed"]:
            raise AlreadyPassed()

    if not await are_all_days_completed(store, student_id, module):
        raise DaysIncomplete()

    if not mcq:
        raise NotFound("MCQ not found for this module")

    if response:
        await store.delete(MCQ_RESPONSES, {"response_id": response["response_id"]})
        await log_progress_audit(
            store, student_id, "mcq_retake_reset",
            module_id=module_id, metadata={"previous_score": result["score"]}
        )
        logger.info("Discarded failed attempt on MCQ %s for %s", mcq["mcq_id"], student_id)

    return {
        "id": mcq["mcq_id"],
        "passing_score": mcq["passing_score"],
        "questions": strip_answers(mcq["questions"]),
        "attempted": response is not None,
    }

async def get_mcq_results(store: RecordStore, student_id: str, module_id: str) -> dict:
    await get_module_or_404(store, module_id)
    mcq = await get_mcq_or_404(store, module_id)

    response = await get_live_response(store, student_id, mcq["mcq_id"])
    if not response:
        raise NotFound("No MCQ response found")

    keys = await get_answer_keys(store, mcq["mcq_id"])
    return {
        "responses": response["responses"],
        **grade(response["responses"], keys, mcq["passing_score"]),
    }

async def get_mcq_review(store: RecordStore, student_id: str, module_id: str) -> dict:
    """
    Per-question review of the live attempt.
    Correct answers are only revealed once the MCQ is passed.
    """
    await get_module_or_404(store, module_id)
    mcq = await get_mcq_or_404(store, module_id)

    response = await get_live_response(store, student_id, mcq["mcq_id"])
    if not response:
        raise NotFound("No MCQ response found")

    keys = await get_answer_keys(store, mcq["mcq_id"])
    result = grade(response["responses"], keys, mcq["passing_score"])

    key_by_question = {k["question_id"]: k["correct_answer"] for k in keys}
    selected_by_question = {r["question_id"]: r["answer"] for r in response["responses"]}

    questions = []
    for q in strip_answers(mcq["questions"]):
        selected = selected_by_question.get(q["id"])
        correct_answer = key_by_question.get(q["id"])
        questions.append({
            **q,
            "selected": selected,
            "is_correct": selected is not None and selected == correct_answer,
            "correct_answer": correct_answer if result["passed"] else None,
        })

    return {**result, "questions": questions}

# ==================== STUDENT VIEWS ====================

async def get_module_detail(store: RecordStore, student_id: str, module_id: str) -> dict:
    module = await get_module_or_404(store, module_id)
    facts = await collect_module_facts(store, student_id, module)
    if not facts["unlocked"]:
        raise Locked()

    days = [
        {**day, "completed": day["day_id"] in facts["completed_ids"]}
        for day in facts["days"]
    ]
    result = facts["result"]
    attempted = result is not None

    return {
        **module,
        "is_locked": False,
        "days": days,
        "mcq_accessible": facts["all_days_completed"] and facts["mcq"] is not None,
        "mcq_attempted": attempted,
        "mcq_passed": result["passed"] if attempted else False,
        "mcq_score": result["score"] if attempted else None,
        "module_fully_completed": facts["all_days_completed"] and attempted,
        "state": facts["state"].value,
    }

async def get_completion_summary(store: RecordStore, student_id: str, module_id: str) -> dict:
    module = await get_module_or_404(store, module_id)
    facts = await collect_module_facts(store, student_id, module)
    result = facts["result"]
    attempted = result is not None

    return {
        "module_id": module_id,
        "all_days_completed": facts["all_days_completed"],
        "mcq_attempted": attempted,
        "mcq_passed": result["passed"] if attempted else False,
        "module_fully_completed": facts["all_days_completed"] and attempted,
        "state": facts["state"].value,
    }

async def get_course_with_lock_status(store: RecordStore, student_id: str, course_id: str) -> dict:
    course = await store.find_one(COURSES, {"course_id": course_id})
    if not course:
        raise NotFound("Course not found")

    modules = await store.find_many(MODULES, {"course_id": course_id}, sort=[("order", 1)])

    results = []
    for module in modules:
        state = await get_module_state(store, student_id, module)
        results.append({
            **module,
            "is_locked": state == ModuleState.LOCKED,
            "state": state.value,
        })

    return {**course, "modules": results}

async def get_day_content(store: RecordStore, student_id: str, day_id: str) -> dict:
    day = await store.find_one(DAY_CONTENTS, {"day_id": day_id})
    if not day:
        raise NotFound("Day content not found")

    module = await get_module_or_404(store, day["module_id"])
    await require_unlocked(store, student_id, module)

    completion = await store.find_one(DAY_COMPLETIONS, {"student_id": student_id, "day_id": day_id})
    return {**day, "completed": bool(completion and completion.get("completed"))}
