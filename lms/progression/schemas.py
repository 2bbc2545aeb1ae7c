from pydantic import BaseModel, Field, validator
from typing import Optional, List

from lms import config
from lms.progression.models import MCQQuestion, ModuleState

# ==================== REQUEST SCHEMAS ====================

class MCQSubmission(BaseModel):
    """
    Student answers, one option id per question, in answer-key order
    """
    responses: List[str]

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""

class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1)
    order: int = Field(..., ge=1)

class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)

class DayContentCreate(BaseModel):
    content: str = Field(..., min_length=1)

class DayContentUpdate(BaseModel):
    content: Optional[str] = None

class MCQOptionIn(BaseModel):
    id: str = Field(..., min_length=1)
    text: str
    correct: bool = False

class MCQQuestionIn(BaseModel):
    """
    Authoring shape of a question. Exactly one option is marked correct;
    the marker is split out into the answer-key collection on save.
    """
    id: str = Field(..., min_length=1)
    question: str
    options: List[MCQOptionIn] = Field(..., min_length=2)

    @validator('options')
    def validate_options(cls, v):
        ids = [opt.id for opt in v]
        if len(set(ids)) != len(ids):
            raise ValueError('Option ids must be unique within a question')
        if sum(1 for opt in v if opt.correct) != 1:
            raise ValueError('Exactly one option must be marked correct')
        return v

def check_unique_question_ids(questions):
    if questions is not None:
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError('Question ids must be unique')
    return questions

class MCQCreate(BaseModel):
    questions: List[MCQQuestionIn]
    passing_score: int = Field(config.DEFAULT_PASSING_SCORE, ge=0, le=100)

    @validator('questions')
    def validate_questions(cls, v):
        return check_unique_question_ids(v)

class MCQUpdate(BaseModel):
    questions: Optional[List[MCQQuestionIn]] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)

    @validator('questions')
    def validate_questions(cls, v):
        return check_unique_question_ids(v)

# ==================== RESPONSE SCHEMAS ====================

class MessageResponse(BaseModel):
    message: str

class SubmitResult(BaseModel):
    """
    score is a percentage in [0, 100]; correct/total are raw counts
    """
    score: float
    passed: bool
    correct: int
    total: int

class RetakeStatus(BaseModel):
    can_take: bool
    can_retake: bool
    has_attempted: bool
    has_passed: bool
    score: Optional[float] = None
    passing_score: int

class CompletionSummary(BaseModel):
    module_id: str
    all_days_completed: bool
    mcq_attempted: bool
    mcq_passed: bool
    module_fully_completed: bool
    state: ModuleState

class StudentMCQ(BaseModel):
    """
    MCQ as served to a student: no correct answers anywhere
    """
    id: str
    passing_score: int
    questions: List[MCQQuestion]
    attempted: bool
