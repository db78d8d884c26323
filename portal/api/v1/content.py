# ============================================================================
# Content Hierarchy Endpoints
# ============================================================================
"""
One router per level (exams, subjects, units, chapters, topics, subtopics,
definitions), all built by ``build_content_router``. Reads are public;
writes go through ``require_write_access``.
"""
from typing import Optional, Type
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import Pagination, require_write_access
from portal.core.database import get_db
from portal.models.user import User
from portal.schemas.content import (
    ExamCreate, ExamUpdate, SubjectCreate, UnitCreate, ChapterCreate, ChapterUpdate,
    TopicCreate, SubTopicCreate, DefinitionCreate, NodeUpdate,
    StatusUpdate, ReorderRequest, DetailsUpdate
)
from portal.services.content_service import ContentService
from portal.services.hierarchy import PLURALS, ancestor_fields

def build_content_router(level: str, create_schema: Type[BaseModel], update_schema: Type[BaseModel]) -> APIRouter:
    plural = PLURALS[level]
    router = APIRouter(prefix=f"/{plural}", tags=[plural])
    filter_fields = ancestor_fields(level)

    @router.get("")
    async def list_nodes(
        exam_id: Optional[UUID] = None,
        subject_id: Optional[UUID] = None,
        unit_id: Optional[UUID] = None,
        chapter_id: Optional[UUID] = None,
        topic_id: Optional[UUID] = None,
        subtopic_id: Optional[UUID] = None,
        status: str = Query("active", description="active, inactive, draft or all"),
        search: Optional[str] = None,
        pagination: Pagination = Depends(),
        db: AsyncSession = Depends(get_db)
    ):
        given = {
            "exam_id": exam_id, "subject_id": subject_id, "unit_id": unit_id,
            "chapter_id": chapter_id, "topic_id": topic_id, "subtopic_id": subtopic_id,
        }
        filters = {k: v for k, v in given.items() if k in filter_fields and v is not None}
        service = ContentService(db, level)
        return await service.list_nodes(
            filters=filters,
            status=status,
            search=search,
            page=pagination.page,
            page_size=pagination.page_size
        )

    @router.get("/{node_id}")
    async def get_node(node_id: UUID, db: AsyncSession = Depends(get_db)):
        return await ContentService(db, level).get_node(node_id)

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_node(
        payload: create_schema,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).create_node(payload.model_dump())

    @router.put("/{node_id}")
    async def update_node(
        node_id: UUID,
        payload: update_schema,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).update_node(node_id, payload.model_dump(exclude_unset=True))

    @router.patch("/{node_id}/status")
    async def set_status(
        node_id: UUID,
        payload: StatusUpdate,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).set_status(node_id, payload.status)

    @router.delete("/{node_id}")
    async def delete_node(
        node_id: UUID,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).delete_node(node_id)

    @router.patch("/reorder")
    async def reorder(
        payload: ReorderRequest,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        items = [item.model_dump() for item in payload.items]
        return await ContentService(db, level).reorder(items)

    @router.get("/{node_id}/details")
    async def get_details(node_id: UUID, db: AsyncSession = Depends(get_db)):
        return await ContentService(db, level).get_details(node_id)

    @router.put("/{node_id}/details")
    async def save_details(
        node_id: UUID,
        payload: DetailsUpdate,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).save_details(node_id, payload.model_dump())

    @router.delete("/{node_id}/details")
    async def delete_details(
        node_id: UUID,
        user: User = Depends(require_write_access),
        db: AsyncSession = Depends(get_db)
    ):
        return await ContentService(db, level).delete_details(node_id)

    return router

exams_router = build_content_router("exam", ExamCreate, ExamUpdate)
subjects_router = build_content_router("subject", SubjectCreate, NodeUpdate)
units_router = build_content_router("unit", UnitCreate, NodeUpdate)
chapters_router = build_content_router("chapter", ChapterCreate, ChapterUpdate)
topics_router = build_content_router("topic", TopicCreate, NodeUpdate)
subtopics_router = build_content_router("subtopic", SubTopicCreate, NodeUpdate)
definitions_router = build_content_router("definition", DefinitionCreate, NodeUpdate)

routers = [
    exams_router, subjects_router, units_router, chapters_router,
    topics_router, subtopics_router, definitions_router,
]
