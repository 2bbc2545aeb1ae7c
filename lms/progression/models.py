from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum

# ==================== COLLECTIONS ====================

COURSES = "courses"
MODULES = "modules"
DAY_CONTENTS = "day_contents"
DAY_COMPLETIONS = "user_day_completions"
MODULE_MCQS = "module_mcqs"
MCQ_ANSWERS = "module_mcq_answers"
MCQ_RESPONSES = "module_mcq_responses"
PROGRESS_AUDITS = "progress_audits"
USER_PROFILES = "users_profile"

# ==================== ENUMS ====================

class ModuleState(str, Enum):
    """
    Per (student, module) progression state.
    Computed on read from completions and the live MCQ attempt, never stored.
    """
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    IN_PROGRESS = "in_progress"
    AWAITING_MCQ = "awaiting_mcq"
    FAILED = "failed"
    PASSED = "passed"

class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"

# ==================== DATABASE MODELS ====================

class Course(BaseModel):
    course_id: str  # COURSE_XXXXXX
    title: str
    description: str = ""
    instructor_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Module(BaseModel):
    """
    Sequenced unit of a course. `order` is 1-based and unique per course.
    `is_locked` is advisory only; gating is computed from MCQ results.
    """
    module_id: str  # MOD_XXXXXX
    course_id: str
    title: str
    order: int
    is_locked: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

class DayContent(BaseModel):
    day_id: str  # DAY_XXXXXX
    module_id: str
    day_number: int
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class UserDayCompletion(BaseModel):
    """One row per (student, day); enforced by a unique index"""
    student_id: str
    day_id: str
    completed: bool = False
    completed_at: Optional[datetime] = None

class MCQOption(BaseModel):
    id: str
    text: str

class MCQQuestion(BaseModel):
    """Question as stored on the MCQ and shown to students (no answers)"""
    id: str
    question: str
    options: List[MCQOption]

class ModuleMCQ(BaseModel):
    mcq_id: str  # MCQ_XXXXXX
    module_id: str
    questions: List[MCQQuestion]
    passing_score: int = 70
    created_at: datetime = Field(default_factory=datetime.utcnow)

class ModuleMCQAnswer(BaseModel):
    """
    Authoritative answer key for one question.
    Grading reads these rows, never the questions blob.
    """
    answer_id: str  # ANS_XXXXXX
    mcq_id: str
    question_id: str
    correct_answer: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class MCQResponseItem(BaseModel):
    question_id: str
    answer: str

class ModuleMCQResponse(BaseModel):
    """The single live attempt of a student on an MCQ"""
    response_id: str  # RESP_XXXXXX
    mcq_id: str
    student_id: str
    responses: List[MCQResponseItem]
    submitted_at: datetime = Field(default_factory=datetime.utcnow)

class ProgressAudit(BaseModel):
    """
    Audit log of completed progression actions
    """
    audit_id: str
    student_id: str
    module_id: Optional[str] = None
    action: str  # day_completed, mcq_submitted, mcq_retake_reset
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
