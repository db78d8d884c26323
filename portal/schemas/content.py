# ============================================================================
# Content Hierarchy Schemas
# ============================================================================
"""
Request models for the exam -> definition hierarchy endpoints.
Responses are plain dicts built by the services.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from uuid import UUID

NODE_STATUSES = ("active", "inactive")
EXAM_STATUSES = ("active", "inactive", "draft")
DETAILS_STATUSES = ("publish", "unpublish", "draft")

def _normalise_status(value: Optional[str], allowed) -> Optional[str]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered not in allowed:
        raise ValueError(f"status must be one of: {', '.join(allowed)}")
    return lowered

def _strip_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    return value

class NodeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    order_number: Optional[int] = Field(None, ge=1)
    status: str = "active"

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_name(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: str) -> str:
        return _normalise_status(v, NODE_STATUSES)

class NodeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    order_number: Optional[int] = Field(None, ge=1)
    status: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return _strip_name(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_status(v, NODE_STATUSES)

# ============================================================================
# Per-level create / update payloads
# ============================================================================
class ExamCreate(NodeBase):
    @field_validator("status")
    @classmethod
    def check_status(cls, v: str) -> str:
        return _normalise_status(v, EXAM_STATUSES)

class ExamUpdate(NodeUpdate):
    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_status(v, EXAM_STATUSES)

class SubjectCreate(NodeBase):
    exam_id: UUID

class UnitCreate(NodeBase):
    subject_id: UUID

class ChapterFields(BaseModel):
    weightage: Optional[int] = Field(None, ge=0, le=100)
    time: Optional[int] = Field(None, ge=0)
    questions: Optional[int] = Field(None, ge=0)

class ChapterCreate(NodeBase, ChapterFields):
    unit_id: UUID

class ChapterUpdate(NodeUpdate, ChapterFields):
    pass

class TopicCreate(NodeBase):
    chapter_id: UUID

class SubTopicCreate(NodeBase):
    topic_id: UUID

class DefinitionCreate(NodeBase):
    subtopic_id: UUID

# ============================================================================
# Shared payloads
# ============================================================================
class StatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def lower(cls, v: str) -> str:
        return v.strip().lower()

class ReorderItem(BaseModel):
    id: UUID
    order_number: int = Field(..., ge=1)

class ReorderRequest(BaseModel):
    items: List[ReorderItem] = Field(..., min_length=1)

class DetailsUpdate(BaseModel):
    content: str = ""
    title: str = Field("", max_length=200)
    meta_description: str = Field("", max_length=500)
    keywords: str = Field("", max_length=1000)
    status: str = "draft"

    @field_validator("status")
    @classmethod
    def check_status(cls, v: str) -> str:
        return _normalise_status(v, DETAILS_STATUSES)
