from fastapi import APIRouter, Depends
from typing import List

from lms.progression import instructor_service as service
from lms.progression.audit import get_audit_trail
from lms.progression.dependencies import get_store
from lms.progression.permissions import (
    get_current_instructor, verify_course_owner, verify_module_owner, InstructorContext
)
from lms.progression.schemas import (
    CourseCreate, DayContentCreate, DayContentUpdate, MCQCreate, MCQUpdate,
    ModuleCreate, ModuleUpdate
)
from lms.progression.store import RecordStore

router = APIRouter(prefix="/instructor", tags=["Course Authoring"])

# ==================== COURSES ====================

@router.post("/courses", status_code=201)
async def create_course(
    payload: CourseCreate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    return await service.create_course(store, payload.title, payload.description, instructor)

# ==================== MODULES ====================

@router.post("/courses/{course_id}/modules", status_code=201)
async def create_module(
    course_id: str,
    payload: ModuleCreate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    """
    Add a module at a given position. Orders are unique per course (409).
    """
    await verify_course_owner(store, course_id, instructor)
    return await service.create_module(store, course_id, payload.title, payload.order)

@router.get("/courses/{course_id}/modules", response_model=List[dict])
async def list_modules(
    course_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    await verify_course_owner(store, course_id, instructor)
    return await service.list_modules(store, course_id)

@router.put("/modules/{module_id}")
async def update_module(
    module_id: str,
    payload: ModuleUpdate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    module = await verify_module_owner(store, module_id, instructor)
    return await service.update_module(store, module, payload.dict())

@router.delete("/modules/{module_id}")
async def delete_module(
    module_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    module = await verify_module_owner(store, module_id, instructor)
    await service.delete_module(store, module)
    return {"message": "Module deleted successfully"}

# ==================== DAY CONTENT ====================

@router.post("/modules/{module_id}/day-content", status_code=201)
async def add_day_content(
    module_id: str,
    payload: DayContentCreate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    await verify_module_owner(store, module_id, instructor)
    return await service.add_day_content(store, module_id, payload.content)

@router.get("/modules/{module_id}/day-content", response_model=List[dict])
async def list_day_content(
    module_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    await verify_module_owner(store, module_id, instructor)
    return await service.list_day_contents(store, module_id)

@router.put("/day-content/{day_id}")
async def update_day_content(
    day_id: str,
    payload: DayContentUpdate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    day = await service.get_day_or_404(store, day_id)
    await verify_module_owner(store, day["module_id"], instructor)
    return await service.update_day_content(store, day, payload.content)

@router.delete("/day-content/{day_id}")
async def delete_day_content(
    day_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    day = await service.get_day_or_404(store, day_id)
    await verify_module_owner(store, day["module_id"], instructor)
    await service.delete_day_content(store, day)
    return {"message": "Day content deleted successfully"}

# ==================== MCQ ====================

@router.post("/modules/{module_id}/mcq", status_code=201)
async def create_mcq(
    module_id: str,
    payload: MCQCreate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    """
    Create the module's MCQ. Correct-option markers are stored as separate
    answer keys and stripped from the question set.
    """
    await verify_module_owner(store, module_id, instructor)
    return await service.create_mcq(store, module_id, payload.questions, payload.passing_score)

@router.get("/mcq/{mcq_id}")
async def get_mcq(
    mcq_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    mcq = await service.get_mcq_or_404(store, mcq_id)
    await verify_module_owner(store, mcq["module_id"], instructor)
    return await service.get_mcq_with_answers(store, mcq)

@router.put("/mcq/{mcq_id}")
async def update_mcq(
    mcq_id: str,
    payload: MCQUpdate,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    mcq = await service.get_mcq_or_404(store, mcq_id)
    await verify_module_owner(store, mcq["module_id"], instructor)
    return await service.update_mcq(store, mcq, payload.questions, payload.passing_score)

@router.delete("/mcq/{mcq_id}")
async def delete_mcq(
    mcq_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    mcq = await service.get_mcq_or_404(store, mcq_id)
    await verify_module_owner(store, mcq["module_id"], instructor)
    await service.delete_mcq(store, mcq)
    return {"message": "MCQ deleted successfully"}

# ==================== AUDIT ====================

@router.get("/courses/{course_id}/students/{student_id}/audit")
async def get_student_audit(
    course_id: str,
    student_id: str,
    instructor: InstructorContext = Depends(get_current_instructor),
    store: RecordStore = Depends(get_store)
):
    """
    Progression audit trail of one student across this course's modules
    """
    await verify_course_owner(store, course_id, instructor)
    modules = await service.list_modules(store, course_id)
    module_ids = {m["module_id"] for m in modules}
    logs = await get_audit_trail(store, student_id)
    return [log for log in logs if log.get("module_id") in module_ids]
