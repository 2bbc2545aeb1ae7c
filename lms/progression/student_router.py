from fastapi import APIRouter, Depends

from lms.progression import engine
from lms.progression.dependencies import get_store
from lms.progression.permissions import get_current_student, StudentContext
from lms.progression.schemas import (
    CompletionSummary, MCQSubmission, MessageResponse, RetakeStatus, StudentMCQ, SubmitResult
)
from lms.progression.store import RecordStore

router = APIRouter(prefix="/student", tags=["Student Progression"])

# ==================== COURSES ====================

@router.get("/courses/{course_id}")
async def get_course(
    course_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Course with its modules in order, each carrying the computed
    lock flag and progression state for this student
    """
    return await engine.get_course_with_lock_status(store, student.user_id, course_id)

# ==================== MODULES ====================

@router.get("/modules/{module_id}")
async def get_module(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Module with per-day completion flags and MCQ outcome

    403 if the module is still locked
    """
    return await engine.get_module_detail(store, student.user_id, module_id)

@router.get("/modules/{module_id}/completion", response_model=CompletionSummary)
async def get_module_completion(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    return await engine.get_completion_summary(store, student.user_id, module_id)

# ==================== DAY CONTENT ====================

@router.get("/day-contents/{day_id}")
async def get_day_content(
    day_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    return await engine.get_day_content(store, student.user_id, day_id)

@router.patch("/day-contents/{day_id}/complete", response_model=MessageResponse)
async def complete_day(
    day_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Mark a day as completed. Safe to repeat.
    """
    return await engine.mark_day_completed(store, student.user_id, day_id)

# ==================== MCQ ====================

@router.get("/modules/{module_id}/mcq", response_model=StudentMCQ)
async def get_module_mcq(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Questions without answers

    Server enforces:
    - Module unlocked (403)
    - All days completed (403)
    - Not already passed (400)

    A failed previous attempt is discarded so it can be retaken.
    """
    return await engine.fetch_mcq_for_student(store, student.user_id, module_id)

@router.post("/modules/{module_id}/mcq/responses", response_model=SubmitResult)
async def submit_mcq(
    module_id: str,
    data: MCQSubmission,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Submit one answer per question, in question order

    403 if already attempted, 400 if the answer count is wrong
    """
    return await engine.submit_mcq_responses(store, student.user_id, module_id, data.responses)

@router.get("/modules/{module_id}/mcq/retake-status", response_model=RetakeStatus)
async def get_retake_status(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    return await engine.retake_status(store, student.user_id, module_id)

@router.get("/modules/{module_id}/mcq/results")
async def get_mcq_results(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    return await engine.get_mcq_results(store, student.user_id, module_id)

@router.get("/modules/{module_id}/mcq/review")
async def get_mcq_review(
    module_id: str,
    student: StudentContext = Depends(get_current_student),
    store: RecordStore = Depends(get_store)
):
    """
    Question-by-question review of the live attempt.
    Correct answers are shown only after passing.
    """
    return await engine.get_mcq_review(store, student.user_id, module_id)
