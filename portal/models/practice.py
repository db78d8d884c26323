# ============================================================================
# Practice Test Models
# ============================================================================
# PracticeCategory -> PracticeSubCategory (one test) -> PracticeQuestion
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from sqlalchemy import Text, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from portal.core.database import Base

ANSWER_CHOICES = ("A", "B", "C", "D")

class PracticeCategory(Base):
    __tablename__ = "practice_categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(UUID(as_uuid=True), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    order_number = Column(Integer, nullable=True)
    no_of_tests = Column(Integer, nullable=False, default=0)
    mode = Column(String(50), nullable=False, default="Online Test")
    duration = Column(String(50), default="")
    language = Column(String(50), nullable=False, default="English")
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("exam_id", "name", name="uq_practice_category_exam_name"),
        UniqueConstraint("exam_id", "order_number", name="uq_practice_category_exam_order"),
    )

    def __repr__(self):
        return f"<PracticeCategory {self.name}>"

class PracticeSubCategory(Base):
    """A single practice test inside a category"""
    __tablename__ = "practice_subcategories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id = Column(UUID(as_uuid=True), ForeignKey("practice_categories.id", ondelete="CASCADE"), nullable=False, index=True)

    # Optional link into the content hierarchy
    unit_id = Column(UUID(as_uuid=True), ForeignKey("units.id", ondelete="CASCADE"), nullable=True, index=True)
    chapter_id = Column(UUID(as_uuid=True), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=True, index=True)
    topic_id = Column(UUID(as_uuid=True), ForeignKey("topics.id", ondelete="CASCADE"), nullable=True, index=True)
    subtopic_id = Column(UUID(as_uuid=True), ForeignKey("subtopics.id", ondelete="CASCADE"), nullable=True, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    duration = Column(String(50), default="")
    maximum_marks = Column(Integer, nullable=False, default=0)
    number_of_questions = Column(Integer, nullable=False, default=0)
    negative_marks = Column(Float, nullable=False, default=0)
    order_number = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_practice_subcategory_category_name"),
    )

    def __repr__(self):
        return f"<PracticeSubCategory {self.name}>"

class PracticeQuestion(Base):
    __tablename__ = "practice_questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subcategory_id = Column(UUID(as_uuid=True), ForeignKey("practice_subcategories.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    answer = Column(String(1), nullable=False)  # A, B, C or D
    video_link = Column(String(500), default="")
    details_explanation = Column(Text, default="")
    order_number = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<PracticeQuestion {self.id} ({self.answer})>"

class StudentTestResult(Base):
    """Graded attempt at a practice test. Resubmission overwrites."""
    __tablename__ = "student_test_results"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    test_id = Column(UUID(as_uuid=True), ForeignKey("practice_subcategories.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(UUID(as_uuid=True), ForeignKey("practice_categories.id", ondelete="CASCADE"), nullable=True)

    total_questions = Column(Integer, nullable=False, default=0)
    correct = Column(Integer, nullable=False, default=0)
    incorrect = Column(Integer, nullable=False, default=0)
    unattempted = Column(Integer, nullable=False, default=0)
    total_marks = Column(Float, nullable=False, default=0)
    maximum_marks = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    time_taken = Column(Integer, default=0)  # seconds
    answers = Column(JSON, nullable=False, default=dict)  # {question_id: "A"}
    question_results = Column(JSON, nullable=False, default=list)
    started_at = Column(DateTime(timezone=True))
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("student_id", "test_id", name="uq_result_student_test"),
    )

    def __repr__(self):
        return f"<StudentTestResult {self.student_id} -> {self.test_id} ({self.percentage}%)>"
