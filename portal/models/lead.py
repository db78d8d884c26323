# ============================================================================
# Lead & Lead-Capture Form Models
# ============================================================================
from sqlalchemy import Column, String, Integer, DateTime, Text, Enum, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum
from portal.core.database import Base

class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    ARCHIVED = "archived"
    UPDATED = "updated"

class Lead(Base):
    __tablename__ = "leads"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    country = Column(String(100), nullable=False, index=True)
    class_name = Column(String(100), nullable=False, index=True)
    phone_number = Column(String(30), nullable=False)
    status = Column(Enum(LeadStatus), nullable=False, default=LeadStatus.NEW, index=True)
    update_count = Column(Integer, nullable=False, default=0)
    form_name = Column(String(200), index=True)
    source = Column(String(100), index=True)  # form, student_registration, contact_page ...
    prepared = Column(String(200))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Lead {self.email} ({self.status.value})>"

class Form(Base):
    """Configurable lead-capture form rendered by the public site"""
    __tablename__ = "forms"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id = Column(String(100), unique=True, nullable=False, index=True)  # public slug
    form_name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    fields = Column(JSON, nullable=False, default=list)
    settings = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="active", index=True)
    submission_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Form {self.form_id}>"
