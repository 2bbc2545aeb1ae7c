import logging

from fastapi import HTTPException, Depends
from pymongo.errors import PyMongoError

from lms.auth.client_bound_guard import verify_client_bound_request
from lms.progression.dependencies import get_store
from lms.progression.models import COURSES, MODULES, USER_PROFILES, UserRole
from lms.progression.store import RecordStore

logger = logging.getLogger(__name__)


class UserContext:
    """
    Validated profile of the authenticated caller
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.username = profile.get("username")
        self.email = profile.get("email_id")
        self.role = profile.get("role", UserRole.STUDENT.value)
        self.profile = profile


class StudentContext(UserContext):
    pass


class InstructorContext(UserContext):
    pass


async def load_profile(user: dict, store: RecordStore) -> dict:
    user_id = user.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user_id")

    try:
        profile = await store.find_one(USER_PROFILES, {"user_id": user_id})
    except PyMongoError:
        logger.exception("Profile lookup failed for %s", user_id)
        raise HTTPException(status_code=500, detail="Auth error")

    if not profile:
        raise HTTPException(
            status_code=404,
            detail="Profile not found. Please complete registration first."
        )
    return profile


async def get_current_student(
    user: dict = Depends(verify_client_bound_request),
    store: RecordStore = Depends(get_store)
) -> StudentContext:
    """
    Dependency: Validates user is a student and returns their context

    Raises:
        401: Invalid token
        403: Not a student
        404: Profile not found
    """
    profile = await load_profile(user, store)

    if profile.get("role", UserRole.STUDENT.value) != UserRole.STUDENT.value:
        raise HTTPException(
            status_code=403,
            detail="Instructors cannot access student endpoints. Use /instructor/* instead."
        )

    return StudentContext(profile["user_id"], profile)


async def get_current_instructor(
    user: dict = Depends(verify_client_bound_request),
    store: RecordStore = Depends(get_store)
) -> InstructorContext:
    """
    Dependency: Validates user is an instructor and returns their context
    """
    profile = await load_profile(user, store)

    if profile.get("role") != UserRole.INSTRUCTOR.value:
        raise HTTPException(
            status_code=403,
            detail="Access denied. Instructor privileges required."
        )

    return InstructorContext(profile["user_id"], profile)


async def verify_course_owner(store: RecordStore, course_id: str, instructor: InstructorContext) -> dict:
    course = await store.find_one(COURSES, {"course_id": course_id})
    if not course:
        raise HTTPException(404, "Course not found")

    if course["instructor_id"] != instructor.user_id:
        raise HTTPException(403, "Not authorized")

    return course


async def verify_module_owner(store: RecordStore, module_id: str, instructor: InstructorContext) -> dict:
    module = await store.find_one(MODULES, {"module_id": module_id})
    if not module:
        raise HTTPException(404, "Module not found")

    await verify_course_owner(store, module["course_id"], instructor)
    return module
