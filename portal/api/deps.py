# ============================================================================
# API Dependencies
# ============================================================================
from typing import Optional
from uuid import UUID
import logging

from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import get_settings
from portal.core.database import get_db
from portal.core.exceptions import AuthenticationFailed, PermissionDenied
from portal.core.security import decode_token, has_permission, MANAGE_USERS, TOKEN_TYPE_USER, TOKEN_TYPE_STUDENT
from portal.models.user import User, Student, AccountStatus
from portal.utils.pagination import clamp_page, clamp_limit

settings = get_settings()
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

def _subject_id(credentials: Optional[HTTPAuthorizationCredentials], token_type: str) -> Optional[UUID]:
    if not credentials:
        return None
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != token_type or not payload.get("sub"):
        return None
    try:
        return UUID(payload["sub"])
    except ValueError:
        return None

# ============================================================================
# Staff authentication
# ============================================================================
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    user_id = _subject_id(credentials, TOKEN_TYPE_USER)
    if user_id is None:
        return None
    return await db.get(User, user_id)

async def get_current_staff(current_user: Optional[User] = Depends(get_current_user)) -> User:
    if not current_user:
        raise AuthenticationFailed()
    if not current_user.is_active:
        raise PermissionDenied("Account is inactive")
    return current_user

async def require_write_access(request: Request, user: User = Depends(get_current_staff)) -> User:
    """Allow the request when the user's role permits its HTTP method"""
    if not has_permission(user.role, request.method):
        logger.warning(f"⛔ {user.email} ({user.role.value}) denied {request.method} {request.url.path}")
        raise PermissionDenied(f"Role '{user.role.value}' cannot perform {request.method} requests")
    return user

async def require_user_management(user: User = Depends(get_current_staff)) -> User:
    if not has_permission(user.role, MANAGE_USERS):
        raise PermissionDenied("Only administrators can manage users")
    return user

# ============================================================================
# Student authentication
# ============================================================================
async def get_current_student(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Student:
    student_id = _subject_id(credentials, TOKEN_TYPE_STUDENT)
    if student_id is None:
        raise AuthenticationFailed()
    student = await db.get(Student, student_id)
    if not student:
        raise AuthenticationFailed("Student not found")
    if student.status != AccountStatus.ACTIVE:
        raise PermissionDenied("Account is inactive")
    return student

# ============================================================================
# Pagination
# ============================================================================
class Pagination:
    def __init__(
        self,
        page: int = Query(1, description="Page number (1-indexed)"),
        limit: Optional[int] = Query(None, description="Items per page")
    ):
        self.page = clamp_page(page)
        self.page_size = clamp_limit(limit)
