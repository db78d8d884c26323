# ============================================================================
# Public Content Tree & Browse Endpoints
# ============================================================================
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.services.tree_service import TreeService

router = APIRouter(tags=["browse"])

@router.get("/tree")
async def get_tree(
    status: str = Query("active", description="active, inactive or all"),
    exam_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """Nested navigation tree from exams down to subtopics"""
    return {"exams": await TreeService(db).get_tree(status=status, exam_id=exam_id)}

@router.get("/browse/{path:path}")
async def browse(path: str, db: AsyncSession = Depends(get_db)):
    """Resolve /exam/subject/unit/... slugs to a page"""
    return await TreeService(db).browse(path.strip("/").split("/"))
