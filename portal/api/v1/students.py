# ============================================================================
# Student Endpoints: Accounts, Progress & Test Results
# ============================================================================
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_student
from portal.core.database import get_db
from portal.models.user import Student
from portal.schemas.practice import AnswerSubmission
from portal.schemas.user import StudentRegister, LoginRequest
from portal.services.progress_service import ProgressService
from portal.services.student_service import StudentService, student_to_dict

router = APIRouter(prefix="/students", tags=["students"])

# ============================================================================
# Request Schemas
# ============================================================================
class VisitRequest(BaseModel):
    chapter_id: UUID
    item_type: Literal["chapter", "topic", "subtopic", "definition"] = "chapter"
    item_id: Optional[UUID] = None

class ChapterProgressUpdate(BaseModel):
    chapter_id: UUID
    manual_progress: Optional[int] = Field(None, ge=0, le=100)

class ProgressUpdateRequest(BaseModel):
    chapters: List[ChapterProgressUpdate] = Field(..., min_length=1)

class CongratulationsRequest(BaseModel):
    level: Literal["chapter", "unit", "subject"]
    id: UUID

# ============================================================================
# Accounts
# ============================================================================
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: StudentRegister, db: AsyncSession = Depends(get_db)):
    return await StudentService(db).register(payload.model_dump())

@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await StudentService(db).authenticate(payload.email, payload.password)

@router.get("/me")
async def me(student: Student = Depends(get_current_student)):
    return student_to_dict(student)

# ============================================================================
# Progress
# ============================================================================
@router.get("/me/progress")
async def get_progress(
    unit_id: Optional[UUID] = None,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return {"units": await ProgressService(db).get_progress(student.id, unit_id=unit_id)}

@router.post("/me/progress/visit")
async def track_visit(
    payload: VisitRequest,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return await ProgressService(db).track_visit(
        student.id, payload.chapter_id, payload.item_type, payload.item_id
    )

@router.post("/me/progress/chapters/{chapter_id}/calculate")
async def calculate_chapter(
    chapter_id: UUID,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return await ProgressService(db).calculate(student.id, chapter_id)

@router.put("/me/progress")
async def set_progress(
    payload: ProgressUpdateRequest,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    items = [c.model_dump() for c in payload.chapters]
    return await ProgressService(db).set_progress(student.id, items)

@router.get("/me/progress/subjects/{subject_id}")
async def get_subject_progress(
    subject_id: UUID,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return await ProgressService(db).get_subject_progress(student.id, subject_id)

@router.post("/me/progress/congratulations")
async def mark_congratulations(
    payload: CongratulationsRequest,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return await ProgressService(db).mark_congratulations(student.id, payload.level, payload.id)

# ============================================================================
# Test results
# ============================================================================
@router.post("/me/results/{test_id}")
async def submit_test(
    test_id: UUID,
    payload: AnswerSubmission,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Grade answers server-side and store the result (one per test)"""
    return await StudentService(db).submit_test(student.id, test_id, payload.model_dump())

@router.get("/me/results")
async def list_results(
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return {"results": await StudentService(db).list_results(student.id)}

@router.get("/me/results/{test_id}")
async def get_result(
    test_id: UUID,
    student: Student = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    return await StudentService(db).get_result(student.id, test_id)
