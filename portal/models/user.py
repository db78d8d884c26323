# ============================================================================
# Staff User & Student Models
# ============================================================================
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum
from portal.core.database import Base

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    SUPER_MODERATOR = "super_moderator"
    MODERATOR = "moderator"
    EDITOR = "editor"
    VIEWER = "viewer"

class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class User(Base):
    """Dashboard (staff) account"""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.VIEWER)
    status = Column(Enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

class Student(Base):
    """Public learner account"""
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone_number = Column(String(30), nullable=False)
    class_name = Column(String(100), nullable=False, index=True)
    prepared = Column(String(200))  # exam the student is preparing for
    country = Column(String(100))
    status = Column(Enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    last_login = Column(DateTime(timezone=True))
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Student {self.email}>"
