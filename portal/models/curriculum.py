# ============================================================================
# Curriculum Hierarchy Models
# ============================================================================
# Exam -> Subject -> Unit -> Chapter -> Topic -> SubTopic -> Definition
#
# Every node carries the ids of all of its ancestors so that a whole branch
# can be addressed with a single indexed filter.
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy import Text, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum
from portal.core.database import Base

class ContentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"  # exams only

class DetailsStatus(str, enum.Enum):
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    DRAFT = "draft"

class Exam(Base):
    __tablename__ = "exams"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=True, index=True)
    order_number = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Exam {self.name}>"

class Subject(Base):
    __tablename__ = "subjects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=True)  # optional for subjects
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("exam_id", "slug", name="uq_subject_exam_slug"),
        UniqueConstraint("exam_id", "order_number", name="uq_subject_exam_order"),
    )

    def __repr__(self):
        return f"<Subject {self.name}>"

class Unit(Base):
    __tablename__ = "units"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("subject_id", "slug", name="uq_unit_subject_slug"),
        UniqueConstraint("subject_id", "order_number", name="uq_unit_subject_order"),
    )

    def __repr__(self):
        return f"<Unit {self.name}>"

class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=False)
    weightage = Column(Integer, nullable=False, default=0)  # % of the exam
    time = Column(Integer, nullable=False, default=0)  # suggested study minutes
    questions = Column(Integer, nullable=False, default=0)  # typical questions asked
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("unit_id", "slug", name="uq_chapter_unit_slug"),
        UniqueConstraint("unit_id", "order_number", name="uq_chapter_unit_order"),
    )

    def __repr__(self):
        return f"<Chapter {self.name}>"

class Topic(Base):
    __tablename__ = "topics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_id = Column(UUID(as_uuid=True), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("chapter_id", "slug", name="uq_topic_chapter_slug"),
        UniqueConstraint("chapter_id", "order_number", name="uq_topic_chapter_order"),
    )

    def __repr__(self):
        return f"<Topic {self.name}>"

class SubTopic(Base):
    __tablename__ = "subtopics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_id = Column(UUID(as_uuid=True), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)
    topic_id = Column(UUID(as_uuid=True), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("topic_id", "slug", name="uq_subtopic_topic_slug"),
        UniqueConstraint("topic_id", "order_number", name="uq_subtopic_topic_order"),
    )

    def __repr__(self):
        return f"<SubTopic {self.name}>"

class Definition(Base):
    __tablename__ = "definitions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_id = Column(UUID(as_uuid=True), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)
    topic_id = Column(UUID(as_uuid=True), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    subtopic_id = Column(UUID(as_uuid=True), ForeignKey("subtopics.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100))
    order_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("subtopic_id", "slug", name="uq_definition_subtopic_slug"),
        UniqueConstraint("subtopic_id", "order_number", name="uq_definition_subtopic_order"),
    )

    def __repr__(self):
        return f"<Definition {self.name}>"

class ContentDetails(Base):
    """
    Rich-text page content and SEO metadata for one hierarchy node.

    A single table serves every level; ``entity_type`` is the level name
    (exam, subject, ... definition) and ``entity_id`` the node id.
    """
    __tablename__ = "content_details"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=False)
    content = Column(Text, nullable=False, default="")  # HTML from the rich-text editor
    title = Column(String(200), nullable=False, default="")
    meta_description = Column(String(500), nullable=False, default="")
    keywords = Column(String(1000), nullable=False, default="")
    status = Column(String(20), nullable=False, default=DetailsStatus.DRAFT.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", name="uq_details_entity"),
        Index("ix_details_entity_id", "entity_id"),
    )

    @property
    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())
