import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from lms.progression.audit import generate_id
from lms.progression.errors import Conflict, InvalidMCQDefinition, NotFound, ProgressionError
from lms.progression.models import (
    COURSES, MODULES, DAY_CONTENTS, DAY_COMPLETIONS, MODULE_MCQS, MCQ_ANSWERS, MCQ_RESPONSES,
    Course, DayContent, MCQOption, MCQQuestion, Module, ModuleMCQ, ModuleMCQAnswer,
)
from lms.progression.permissions import InstructorContext
from lms.progression.schemas import MCQQuestionIn
from lms.progression.store import RecordStore

logger = logging.getLogger(__name__)

# ==================== COURSES ====================

async def create_course(store: RecordStore, title: str, description: str, instructor: InstructorContext) -> dict:
    course = Course(
        course_id=generate_id("COURSE"),
        title=title,
        description=description,
        instructor_id=instructor.user_id
    )
    return await store.create(COURSES, course.dict())

# ==================== MODULES ====================

async def ensure_order_free(store: RecordStore, course_id: str, order: int, exclude_module_id: str = None):
    existing = await store.find_one(MODULES, {"course_id": course_id, "order": order})
    if existing and existing["module_id"] != exclude_module_id:
        raise Conflict(f"Module with order {order} already exists in this course")

async def create_module(store: RecordStore, course_id: str, title: str, order: int) -> dict:
    await ensure_order_free(store, course_id, order)

    module = Module(
        module_id=generate_id("MOD"),
        course_id=course_id,
        title=title,
        order=order,
        is_locked=order != 1
    )
    try:
        return await store.create(MODULES, module.dict())
    except DuplicateKeyError:
        raise Conflict(f"Module with order {order} already exists in this course")

async def list_modules(store: RecordStore, course_id: str) -> List[dict]:
    return await store.find_many(MODULES, {"course_id": course_id}, sort=[("order", 1)])

async def update_module(store: RecordStore, module: dict, updates: dict) -> dict:
    updates = {k: v for k, v in updates.items() if v is not None}
    if "order" in updates:
        await ensure_order_free(store, module["course_id"], updates["order"], module["module_id"])
        updates["is_locked"] = updates["order"] != 1

    if updates:
        try:
            await store.update(MODULES, {"module_id": module["module_id"]}, updates)
        except DuplicateKeyError:
            raise Conflict(f"Module with order {updates['order']} already exists in this course")

    return {**module, **updates}

async def delete_module(store: RecordStore, module: dict):
    """Removes the module with its days, MCQ and all student progress on them"""
    module_id = module["module_id"]

    days = await store.find_many(DAY_CONTENTS, {"module_id": module_id})
    if days:
        await store.delete(DAY_COMPLETIONS, {"day_id": {"$in": [d["day_id"] for d in days]}})
        await store.delete(DAY_CONTENTS, {"module_id": module_id})

    mcq = await store.find_one(MODULE_MCQS, {"module_id": module_id})
    if mcq:
        await delete_mcq(store, mcq)

    await store.delete(MODULES, {"module_id": module_id})
    logger.info("Deleted module %s (%d days)", module_id, len(days))

# ==================== DAY CONTENT ====================

async def add_day_content(store: RecordStore, module_id: str, content: str) -> dict:
    """Day numbers continue from the module's last day"""
    days = await store.find_many(DAY_CONTENTS, {"module_id": module_id}, sort=[("day_number", -1)])
    next_number = days[0]["day_number"] + 1 if days else 1

    day = DayContent(
        day_id=generate_id("DAY"),
        module_id=module_id,
        day_number=next_number,
        content=content
    )
    try:
        return await store.create(DAY_CONTENTS, day.dict())
    except DuplicateKeyError:
        raise Conflict("Day number already taken, retry")

async def get_day_or_404(store: RecordStore, day_id: str) -> dict:
    day = await store.find_one(DAY_CONTENTS, {"day_id": day_id})
    if not day:
        raise NotFound("Day content not found")
    return day

async def list_day_contents(store: RecordStore, module_id: str) -> List[dict]:
    return await store.find_many(DAY_CONTENTS, {"module_id": module_id}, sort=[("day_number", 1)])

async def update_day_content(store: RecordStore, day: dict, content: Optional[str]) -> dict:
    if content is not None:
        await store.update(DAY_CONTENTS, {"day_id": day["day_id"]}, {"content": content})
        day = {**day, "content": content}
    return day

async def delete_day_content(store: RecordStore, day: dict):
    await store.delete(DAY_COMPLETIONS, {"day_id": day["day_id"]})
    await store.delete(DAY_CONTENTS, {"day_id": day["day_id"]})

# ==================== MCQ ====================

def split_answer_keys(mcq_id: str, questions: List[MCQQuestionIn]):
    """
    Separate the authoring payload into the student-visible question set and
    the answer-key rows. created_at is spaced 1ms apart so key order follows
    question order at Mongo's millisecond precision.
    """
    if not questions:
        raise InvalidMCQDefinition("MCQ must have at least one question")

    base = datetime.utcnow()
    stored_questions = []
    answer_keys = []
    for i, q in enumerate(questions):
        stored_questions.append(MCQQuestion(
            id=q.id,
            question=q.question,
            options=[MCQOption(id=opt.id, text=opt.text) for opt in q.options]
        ))
        correct = next(opt for opt in q.options if opt.correct)
        answer_keys.append(ModuleMCQAnswer(
            answer_id=generate_id("ANS"),
            mcq_id=mcq_id,
            question_id=q.id,
            correct_answer=correct.id,
            created_at=base + timedelta(milliseconds=i)
        ))
    return stored_questions, answer_keys

async def create_mcq(store: RecordStore, module_id: str, questions: List[MCQQuestionIn], passing_score: int) -> dict:
    existing = await store.find_one(MODULE_MCQS, {"module_id": module_id})
    if existing:
        raise ProgressionError("An MCQ already exists for this module. Use update to modify it.")

    mcq_id = generate_id("MCQ")
    stored_questions, answer_keys = split_answer_keys(mcq_id, questions)

    mcq = ModuleMCQ(
        mcq_id=mcq_id,
        module_id=module_id,
        questions=stored_questions,
        passing_score=passing_score
    )
    try:
        doc = await store.create(MODULE_MCQS, mcq.dict())
    except DuplicateKeyError:
        raise ProgressionError("An MCQ already exists for this module. Use update to modify it.")

    for key in answer_keys:
        await store.create(MCQ_ANSWERS, key.dict())

    logger.info("Created MCQ %s for module %s (%d questions)", mcq_id, module_id, len(answer_keys))
    return doc

async def get_mcq_or_404(store: RecordStore, mcq_id: str) -> dict:
    mcq = await store.find_one(MODULE_MCQS, {"mcq_id": mcq_id})
    if not mcq:
        raise NotFound("MCQ not found")
    return mcq

async def get_mcq_with_answers(store: RecordStore, mcq: dict) -> dict:
    keys = await store.find_many(MCQ_ANSWERS, {"mcq_id": mcq["mcq_id"]}, sort=[("created_at", 1)])
    return {**mcq, "answer_keys": [
        {"question_id": k["question_id"], "correct_answer": k["correct_answer"]} for k in keys
    ]}

async def update_mcq(
    store: RecordStore,
    mcq: dict,
    questions: Optional[List[MCQQuestionIn]],
    passing_score: Optional[int]
) -> dict:
    """
    Replacing the questions rewrites every answer key.
    Existing student attempts are kept and graded against the new keys.
    """
    updates = {}
    answer_keys = None
    if questions is not None:
        stored_questions, answer_keys = split_answer_keys(mcq["mcq_id"], questions)
        updates["questions"] = [q.dict() for q in stored_questions]
    if passing_score is not None:
        updates["passing_score"] = passing_score

    if updates:
        await store.update(MODULE_MCQS, {"mcq_id": mcq["mcq_id"]}, updates)

    if answer_keys is not None:
        await store.delete(MCQ_ANSWERS, {"mcq_id": mcq["mcq_id"]})
        for key in answer_keys:
            await store.create(MCQ_ANSWERS, key.dict())

    return {**mcq, **updates}

async def delete_mcq(store: RecordStore, mcq: dict):
    await store.delete(MCQ_ANSWERS, {"mcq_id": mcq["mcq_id"]})
    await store.delete(MCQ_RESPONSES, {"mcq_id": mcq["mcq_id"]})
    await store.delete(MODULE_MCQS, {"mcq_id": mcq["mcq_id"]})
