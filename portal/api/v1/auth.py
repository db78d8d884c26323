# ============================================================================
# Staff Authentication Endpoints
# ============================================================================
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_staff
from portal.core.database import get_db
from portal.models.user import User
from portal.schemas.user import LoginRequest
from portal.services.user_service import UserManagementService, user_to_dict

router = APIRouter(prefix="/auth", tags=["auth"])

# ============================================================================
# Request Schemas
# ============================================================================
class AdminRegisterRequest(BaseModel):
    """Admin self-registration, requires the server's registration code"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=1)
    registration_code: str = Field(..., min_length=1)

# ============================================================================
# Endpoints
# ============================================================================
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: AdminRegisterRequest, db: AsyncSession = Depends(get_db)):
    service = UserManagementService(db)
    return await service.register_admin(
        registration_code=request.registration_code,
        name=request.name,
        email=request.email,
        password=request.password
    )

@router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await UserManagementService(db).authenticate(request.email, request.password)

@router.get("/me")
async def me(user: User = Depends(get_current_staff)):
    return user_to_dict(user)
