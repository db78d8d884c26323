# ============================================================================
# Practice Test Endpoints
# ============================================================================
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import Pagination, get_current_staff, require_write_access
from portal.core.database import get_db
from portal.core.exceptions import InvalidRequest
from portal.models.user import User
from portal.schemas.content import StatusUpdate
from portal.schemas.practice import (
    CategoryCreate, CategoryUpdate, SubCategoryCreate, SubCategoryUpdate, QuestionCreate, QuestionUpdate
)
from portal.services.practice_service import PracticeService

router = APIRouter(prefix="/practice", tags=["practice"])

def _check_practice_status(value: str) -> str:
    if value not in ("active", "inactive"):
        raise InvalidRequest("status must be 'active' or 'inactive'", error_code="INVALID_STATUS")
    return value

# ============================================================================
# Categories
# ============================================================================
@router.get("/categories")
async def list_categories(
    exam_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
    status: str = Query("active"),
    search: Optional[str] = None,
    pagination: Pagination = Depends(),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).list_categories(
        exam_id=exam_id, subject_id=subject_id, status=status, search=search,
        page=pagination.page, page_size=pagination.page_size
    )

@router.get("/categories/{category_id}")
async def get_category(category_id: UUID, db: AsyncSession = Depends(get_db)):
    return await PracticeService(db).get_category(category_id)

@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).create_category(payload.model_dump())

@router.put("/categories/{category_id}")
async def update_category(
    category_id: UUID,
    payload: CategoryUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).update_category(category_id, payload.model_dump(exclude_unset=True))

@router.patch("/categories/{category_id}/status")
async def set_category_status(
    category_id: UUID,
    payload: StatusUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).set_category_status(category_id, _check_practice_status(payload.status))

@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: UUID,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).delete_category(category_id)

# ============================================================================
# Subcategories (tests)
# ============================================================================
@router.get("/subcategories")
async def list_subcategories(
    category_id: Optional[UUID] = None,
    unit_id: Optional[UUID] = None,
    chapter_id: Optional[UUID] = None,
    topic_id: Optional[UUID] = None,
    subtopic_id: Optional[UUID] = None,
    status: str = Query("active"),
    search: Optional[str] = None,
    pagination: Pagination = Depends(),
    db: AsyncSession = Depends(get_db)
):
    filters = {"unit_id": unit_id, "chapter_id": chapter_id, "topic_id": topic_id, "subtopic_id": subtopic_id}
    return await PracticeService(db).list_subcategories(
        category_id=category_id, filters=filters, status=status, search=search,
        page=pagination.page, page_size=pagination.page_size
    )

@router.get("/subcategories/{subcategory_id}")
async def get_subcategory(subcategory_id: UUID, db: AsyncSession = Depends(get_db)):
    return await PracticeService(db).get_subcategory(subcategory_id)

@router.post("/subcategories", status_code=status.HTTP_201_CREATED)
async def create_subcategory(
    payload: SubCategoryCreate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).create_subcategory(payload.model_dump())

@router.put("/subcategories/{subcategory_id}")
async def update_subcategory(
    subcategory_id: UUID,
    payload: SubCategoryUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).update_subcategory(subcategory_id, payload.model_dump(exclude_unset=True))

@router.patch("/subcategories/{subcategory_id}/status")
async def set_subcategory_status(
    subcategory_id: UUID,
    payload: StatusUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).set_subcategory_status(subcategory_id, _check_practice_status(payload.status))

@router.delete("/subcategories/{subcategory_id}")
async def delete_subcategory(
    subcategory_id: UUID,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).delete_subcategory(subcategory_id)

@router.get("/subcategories/{subcategory_id}/test")
async def get_public_test(subcategory_id: UUID, db: AsyncSession = Depends(get_db)):
    """Questions for taking a test; answers are not included"""
    return await PracticeService(db).get_public_test(subcategory_id)

@router.post("/subcategories/{subcategory_id}/import")
async def import_questions(
    subcategory_id: UUID,
    file: UploadFile = File(...),
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    """Bulk-import questions from a CSV upload (all rows or none)"""
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise InvalidRequest("CSV file must be UTF-8 encoded", error_code="IMPORT_FAILED")
    return await PracticeService(db).import_questions(subcategory_id, text)

# ============================================================================
# Questions
# ============================================================================
@router.get("/questions")
async def list_questions(
    subcategory_id: Optional[UUID] = None,
    status: str = Query("active"),
    pagination: Pagination = Depends(),
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """Questions with their answer keys; students get the answer-free test view"""
    return await PracticeService(db).list_questions(
        subcategory_id=subcategory_id, status=status,
        page=pagination.page, page_size=pagination.page_size
    )

@router.get("/questions/{question_id}")
async def get_question(
    question_id: UUID,
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).get_question(question_id)

@router.post("/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    payload: QuestionCreate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).create_question(payload.model_dump())

@router.put("/questions/{question_id}")
async def update_question(
    question_id: UUID,
    payload: QuestionUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).update_question(question_id, payload.model_dump(exclude_unset=True))

@router.patch("/questions/{question_id}/status")
async def set_question_status(
    question_id: UUID,
    payload: StatusUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).set_question_status(question_id, _check_practice_status(payload.status))

@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: UUID,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await PracticeService(db).delete_question(question_id)
