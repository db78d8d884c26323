# ============================================================================
# Practice Test Schemas
# ============================================================================
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict
from datetime import datetime
from uuid import UUID

PRACTICE_STATUSES = ("active", "inactive")

def _check_status(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip().lower()
    if v not in PRACTICE_STATUSES:
        raise ValueError("status must be 'active' or 'inactive'")
    return v

class StatusChecked(BaseModel):
    @field_validator("status", check_fields=False)
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)

    @field_validator("name", check_fields=False)
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

class CategoryCreate(StatusChecked):
    exam_id: UUID
    subject_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    order_number: Optional[int] = Field(None, ge=1)
    no_of_tests: int = Field(0, ge=0)
    mode: str = "Online Test"
    duration: str = ""
    language: str = "English"
    status: str = "active"

class CategoryUpdate(StatusChecked):
    subject_id: Optional[UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    order_number: Optional[int] = Field(None, ge=1)
    no_of_tests: Optional[int] = Field(None, ge=0)
    mode: Optional[str] = None
    duration: Optional[str] = None
    language: Optional[str] = None
    status: Optional[str] = None

class SubCategoryCreate(StatusChecked):
    category_id: UUID
    unit_id: Optional[UUID] = None
    chapter_id: Optional[UUID] = None
    topic_id: Optional[UUID] = None
    subtopic_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    duration: str = ""
    maximum_marks: int = Field(0, ge=0)
    number_of_questions: int = Field(0, ge=0)
    negative_marks: float = Field(0, ge=0)
    order_number: Optional[int] = Field(None, ge=1)
    status: str = "active"

class SubCategoryUpdate(StatusChecked):
    unit_id: Optional[UUID] = None
    chapter_id: Optional[UUID] = None
    topic_id: Optional[UUID] = None
    subtopic_id: Optional[UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    duration: Optional[str] = None
    maximum_marks: Optional[int] = Field(None, ge=0)
    number_of_questions: Optional[int] = Field(None, ge=0)
    negative_marks: Optional[float] = Field(None, ge=0)
    order_number: Optional[int] = Field(None, ge=1)
    status: Optional[str] = None

class QuestionFields(StatusChecked):
    @field_validator("answer", check_fields=False)
    @classmethod
    def upper_answer(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        if v not in ("A", "B", "C", "D"):
            raise ValueError("Answer must be A, B, C, or D")
        return v

class QuestionCreate(QuestionFields):
    subcategory_id: UUID
    question: str = Field(..., min_length=1)
    option_a: str = Field(..., min_length=1)
    option_b: str = Field(..., min_length=1)
    option_c: str = Field(..., min_length=1)
    option_d: str = Field(..., min_length=1)
    answer: str
    video_link: str = ""
    details_explanation: str = ""
    order_number: Optional[int] = Field(None, ge=1)
    status: str = "active"

class QuestionUpdate(QuestionFields):
    question: Optional[str] = Field(None, min_length=1)
    option_a: Optional[str] = Field(None, min_length=1)
    option_b: Optional[str] = Field(None, min_length=1)
    option_c: Optional[str] = Field(None, min_length=1)
    option_d: Optional[str] = Field(None, min_length=1)
    answer: Optional[str] = None
    video_link: Optional[str] = None
    details_explanation: Optional[str] = None
    order_number: Optional[int] = Field(None, ge=1)
    status: Optional[str] = None

class AnswerSubmission(BaseModel):
    """Answers keyed by question id; unanswered questions may be omitted"""
    answers: Dict[UUID, Optional[str]] = Field(default_factory=dict)
    time_taken: int = Field(0, ge=0)
    started_at: Optional[datetime] = None
