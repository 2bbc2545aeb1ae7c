import logging
from motor.motor_asyncio import AsyncIOMotorDatabase

from lms.progression.models import (
    COURSES, MODULES, DAY_CONTENTS, DAY_COMPLETIONS, MODULE_MCQS, MCQ_ANSWERS, MCQ_RESPONSES,
    PROGRESS_AUDITS, USER_PROFILES,
)

logger = logging.getLogger(__name__)


async def create_progression_indexes(db: AsyncIOMotorDatabase):
    """
    Create indexes, including the unique constraints that make day completion
    and MCQ submission safe under concurrent requests.
    Called during application startup
    """

    # Courses and profiles
    await db[COURSES].create_index("course_id", unique=True)
    await db[COURSES].create_index("instructor_id")
    await db[USER_PROFILES].create_index("user_id", unique=True)

    # Modules: one module per position in a course
    await db[MODULES].create_index("module_id", unique=True)
    await db[MODULES].create_index([("course_id", 1), ("order", 1)], unique=True)

    # Day content: day numbers unique within a module
    await db[DAY_CONTENTS].create_index("day_id", unique=True)
    await db[DAY_CONTENTS].create_index([("module_id", 1), ("day_number", 1)], unique=True)

    # Day completions: one row per (student, day)
    await db[DAY_COMPLETIONS].create_index([("student_id", 1), ("day_id", 1)], unique=True)
    await db[DAY_COMPLETIONS].create_index("day_id")

    # MCQ: 1:1 with module
    await db[MODULE_MCQS].create_index("mcq_id", unique=True)
    await db[MODULE_MCQS].create_index("module_id", unique=True)

    # Answer keys
    await db[MCQ_ANSWERS].create_index([("mcq_id", 1), ("question_id", 1)], unique=True)
    await db[MCQ_ANSWERS].create_index([("mcq_id", 1), ("created_at", 1)])

    # Responses: at most one live attempt per (student, MCQ)
    await db[MCQ_RESPONSES].create_index("response_id", unique=True)
    await db[MCQ_RESPONSES].create_index([("student_id", 1), ("mcq_id", 1)], unique=True)
    await db[MCQ_RESPONSES].create_index("mcq_id")

    # Audits
    await db[PROGRESS_AUDITS].create_index([("student_id", 1), ("timestamp", -1)])
    await db[PROGRESS_AUDITS].create_index("module_id")

    logger.info("Progression indexes created")
