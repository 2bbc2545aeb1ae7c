import asyncio
import copy

import pytest
from pymongo.errors import DuplicateKeyError

from lms.progression import instructor_service
from lms.progression.models import (
    DAY_COMPLETIONS, DAY_CONTENTS, MCQ_ANSWERS, MCQ_RESPONSES, MODULE_MCQS, MODULES, USER_PROFILES,
)
from lms.progression.permissions import InstructorContext, StudentContext
from lms.progression.schemas import MCQQuestionIn

STUDENT_ID = "STU_1"
INSTRUCTOR_ID = "INS_1"

UNIQUE_FIELDS = {
    MODULES: [("course_id", "order")],
    DAY_CONTENTS: [("module_id", "day_number")],
    DAY_COMPLETIONS: [("student_id", "day_id")],
    MODULE_MCQS: [("module_id",)],
    MCQ_ANSWERS: [("mcq_id", "question_id")],
    MCQ_RESPONSES: [("student_id", "mcq_id")],
    USER_PROFILES: [("user_id",)],
}


def _matches(doc, filter):
    for key, expected in filter.items():
        value = doc.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if value not in expected["$in"]:
                return False
        elif value != expected:
            return False
    return True


class InMemoryStore:
    """Same interface as RecordStore, backed by dict lists, with unique indexes"""

    def __init__(self):
        self.collections = {}
        self.fail_with = None

    def rows(self, collection):
        """Read-only view; reading never creates a collection"""
        return self.collections.get(collection, [])

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    def _check_unique(self, collection, doc, ignore=None):
        for fields in UNIQUE_FIELDS.get(collection, []):
            for row in self.rows(collection):
                if row is ignore:
                    continue
                if all(row.get(f) == doc.get(f) for f in fields):
                    raise DuplicateKeyError(f"duplicate key on {collection} {fields}")

    async def find_one(self, collection, filter):
        self._check()
        for row in self.rows(collection):
            if _matches(row, filter):
                return copy.deepcopy(row)
        return None

    async def find_many(self, collection, filter, sort=None):
        self._check()
        found = [copy.deepcopy(r) for r in self.rows(collection) if _matches(r, filter)]
        for field, direction in reversed(list(sort or [])):
            found.sort(key=lambda r: r.get(field), reverse=direction < 0)
        return found

    async def create(self, collection, data):
        self._check()
        doc = copy.deepcopy(data)
        self._check_unique(collection, doc)
        self.collections.setdefault(collection, []).append(doc)
        return copy.deepcopy(doc)

    async def update(self, collection, filter, data):
        self._check()
        modified = 0
        for row in self.rows(collection):
            if _matches(row, filter):
                candidate = {**row, **data}
                self._check_unique(collection, candidate, ignore=row)
                row.update(copy.deepcopy(data))
                modified += 1
        return modified

    async def upsert(self, collection, filter, data):
        self._check()
        for row in self.rows(collection):
            if _matches(row, filter):
                row.update(copy.deepcopy(data))
                return
        await self.create(collection, {**filter, **data})

    async def delete(self, collection, filter):
        self._check()
        if collection not in self.collections:
            return 0
        rows = self.collections[collection]
        kept = [r for r in rows if not _matches(r, filter)]
        self.collections[collection] = kept
        return len(rows) - len(kept)

    async def count(self, collection, filter):
        return len([r for r in self.rows(collection) if _matches(r, filter)])

    async def ping(self):
        self._check()
        return True

    def snapshot(self):
        return copy.deepcopy(self.collections)


def run(coro):
    return asyncio.run(coro)


def make_question(qid, correct, options=("a", "b", "c", "d")):
    return MCQQuestionIn(
        id=qid,
        question=f"Question {qid}",
        options=[{"id": o, "text": f"Option {o}", "correct": o == correct} for o in options],
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def student():
    return StudentContext(STUDENT_ID, {"user_id": STUDENT_ID, "username": "sam", "role": "student"})


@pytest.fixture
def instructor():
    return InstructorContext(INSTRUCTOR_ID, {"user_id": INSTRUCTOR_ID, "username": "ina", "role": "instructor"})


@pytest.fixture
def course(store, instructor):
    """
    Course with three modules:
    M1 (order 1): 2 days, MCQ of 4 questions (answers a, b, c, d), passing 70
    M2 (order 2): 1 day, MCQ of 2 questions (answers a, b), passing 50
    M3 (order 3): 1 day, no MCQ
    """
    async def build():
        c = await instructor_service.create_course(store, "Python", "Basics", instructor)
        m1 = await instructor_service.create_module(store, c["course_id"], "Intro", 1)
        m2 = await instructor_service.create_module(store, c["course_id"], "Loops", 2)
        m3 = await instructor_service.create_module(store, c["course_id"], "Functions", 3)

        m1_days = [
            await instructor_service.add_day_content(store, m1["module_id"], "Variables"),
            await instructor_service.add_day_content(store, m1["module_id"], "Types"),
        ]
        m2_days = [await instructor_service.add_day_content(store, m2["module_id"], "For loops")]
        m3_days = [await instructor_service.add_day_content(store, m3["module_id"], "def")]

        mcq1 = await instructor_service.create_mcq(
            store, m1["module_id"],
            [make_question("q1", "a"), make_question("q2", "b"), make_question("q3", "c"), make_question("q4", "d")],
            70,
        )
        mcq2 = await instructor_service.create_mcq(
            store, m2["module_id"], [make_question("q1", "a"), make_question("q2", "b")], 50
        )
        return {
            "course": c,
            "modules": [m1, m2, m3],
            "days": [m1_days, m2_days, m3_days],
            "mcqs": [mcq1, mcq2],
        }

    return run(build())
