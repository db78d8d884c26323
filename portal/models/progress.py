# ============================================================================
# Student Progress Models
# ============================================================================
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from datetime import datetime, timezone
import uuid
from portal.core.database import Base

def _utcnow():
    return datetime.now(timezone.utc)

class ChapterProgress(Base):
    __tablename__ = "chapter_progress"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_id = Column(UUID(as_uuid=True), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)

    progress = Column(Integer, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    is_manual_override = Column(Boolean, nullable=False, default=False)
    manual_progress = Column(Integer, nullable=True)
    auto_calculated_progress = Column(Integer, nullable=False, default=0)

    # Visit tracking. JSON lists are replaced, never mutated in place,
    # so the ORM notices the change.
    visited_chapter = Column(Boolean, nullable=False, default=False)
    visited_topics = Column(JSON, nullable=False, default=list)
    visited_subtopics = Column(JSON, nullable=False, default=list)
    visited_definitions = Column(JSON, nullable=False, default=list)

    congratulations_shown = Column(Boolean, nullable=False, default=False)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("student_id", "chapter_id", name="uq_chapter_progress_student_chapter"),
    )

class UnitProgress(Base):
    __tablename__ = "unit_progress"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    congratulations_shown = Column(Boolean, nullable=False, default=False)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("student_id", "unit_id", name="uq_unit_progress_student_unit"),
    )

class SubjectProgress(Base):
    __tablename__ = "subject_progress"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    progress = Column(Integer, nullable=False, default=0)
    congratulations_shown = Column(Boolean, nullable=False, default=False)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_subject_progress_student_subject"),
    )
