# ============================================================================
# Staff User Management Endpoints
# ============================================================================
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import Pagination, get_current_staff, require_user_management
from portal.core.database import get_db
from portal.models.user import User, UserRole, AccountStatus
from portal.schemas.user import UserCreate, UserUpdate
from portal.services.user_service import UserManagementService

router = APIRouter(prefix="/users", tags=["users"])

@router.get("")
async def list_users(
    role: Optional[UserRole] = None,
    status: Optional[AccountStatus] = None,
    search: Optional[str] = None,
    pagination: Pagination = Depends(),
    admin: User = Depends(require_user_management),
    db: AsyncSession = Depends(get_db)
):
    filters = {"role": role, "status": status, "search": search}
    return await UserManagementService(db).list_users(
        filters, page=pagination.page, page_size=pagination.page_size
    )

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    admin: User = Depends(require_user_management),
    db: AsyncSession = Depends(get_db)
):
    return await UserManagementService(db).create_user(payload.model_dump())

@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    admin: User = Depends(require_user_management),
    db: AsyncSession = Depends(get_db)
):
    return await UserManagementService(db).get_user(user_id)

@router.put("/{user_id}")
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """Admins update anyone; other staff may update only their own profile"""
    return await UserManagementService(db).update_user(user, user_id, payload.model_dump(exclude_unset=True))

@router.delete("/{user_id}")
async def delete_user(
    user_id: UUID,
    admin: User = Depends(require_user_management),
    db: AsyncSession = Depends(get_db)
):
    return await UserManagementService(db).delete_user(admin, user_id)
