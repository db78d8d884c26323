# ============================================================================
# Staff User Management Service
# ============================================================================
"""
Service layer for dashboard accounts: registration, login and the
admin-only user management screens.
"""
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from uuid import UUID
import logging
import secrets

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import get_settings
from portal.core.exceptions import (
    NotFound, Conflict, AuthenticationFailed, PermissionDenied, ConfigurationError, InvalidRequest
)
from portal.core.security import (
    get_password_hash, verify_password, create_user_token, has_permission, MANAGE_USERS
)
from portal.models.user import User, UserRole, AccountStatus
from portal.utils.pagination import paginated

settings = get_settings()
logger = logging.getLogger(__name__)

def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "status": user.status.value,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }

class UserManagementService:
    """
    Staff account management.

    Admins manage every account. Other roles may only edit their own
    profile and never their own role or status.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("User", str(user_id))
        return user

    async def _email_taken(self, email: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(User.id).where(User.email == email.lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        return (await self.db.execute(query.limit(1))).scalar() is not None

    # =========================================================================
    # Authentication
    # =========================================================================
    async def register_admin(self, registration_code: str, name: str, email: str, password: str) -> Dict[str, Any]:
        """Self-registration, gated by ADMIN_REGISTRATION_CODE"""
        if not settings.ADMIN_REGISTRATION_CODE:
            raise ConfigurationError("Admin registration is not configured on this server")
        if not secrets.compare_digest(registration_code or "", settings.ADMIN_REGISTRATION_CODE):
            raise PermissionDenied("Invalid registration code")
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise InvalidRequest(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        if await self._email_taken(email):
            raise Conflict("A user with this email already exists")

        user = User(
            name=name.strip(),
            email=email.lower(),
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
            status=AccountStatus.ACTIVE
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"👤 Registered admin: {user.email}")
        return {"token": create_user_token(user.id, user.role), "user": user_to_dict(user)}

    async def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationFailed("Invalid email or password")
        if not user.is_active:
            raise PermissionDenied("Account is inactive. Contact an administrator.")

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"🔐 Staff login: {user.email} ({user.role.value})")
        return {"token": create_user_token(user.id, user.role), "user": user_to_dict(user)}

    # =========================================================================
    # User Management
    # =========================================================================
    async def list_users(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        filters = filters or {}
        conditions = []
        if filters.get("role"):
            conditions.append(User.role == filters["role"])
        if filters.get("status"):
            conditions.append(User.status == filters["status"])
        if filters.get("search"):
            pattern = f"%{filters['search'].strip()}%"
            conditions.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

        total = (await self.db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
        result = await self.db.execute(
            select(User).where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        return paginated([user_to_dict(u) for u in result.scalars().all()], total, page, page_size)

    async def get_user(self, user_id: UUID) -> Dict[str, Any]:
        return user_to_dict(await self._get(user_id))

    async def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if await self._email_taken(data["email"]):
            raise Conflict("A user with this email already exists")

        user = User(
            name=data["name"].strip(),
            email=data["email"].lower(),
            password_hash=get_password_hash(data["password"]),
            role=data.get("role") or UserRole.VIEWER,
            status=data.get("status") or AccountStatus.ACTIVE
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"👤 Created user {user.email} ({user.role.value})")
        return user_to_dict(user)

    async def update_user(self, actor: User, user_id: UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        is_admin = has_permission(actor.role, MANAGE_USERS)
        if not is_admin and actor.id != user_id:
            raise PermissionDenied("You can only update your own profile")
        if not is_admin and (updates.get("role") is not None or updates.get("status") is not None):
            raise PermissionDenied("You cannot change your own role or status")

        user = await self._get(user_id)

        if updates.get("email"):
            email = updates["email"].lower()
            if email != user.email and await self._email_taken(email, exclude_id=user.id):
                raise Conflict("A user with this email already exists")
            user.email = email
        if updates.get("name"):
            user.name = updates["name"].strip()
        if updates.get("password"):
            user.password_hash = get_password_hash(updates["password"])
        if updates.get("role") is not None:
            user.role = updates["role"]
        if updates.get("status") is not None:
            user.status = updates["status"]

        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"✏️ {actor.email} updated user {user.email}")
        return user_to_dict(user)

    async def delete_user(self, actor: User, user_id: UUID) -> Dict[str, Any]:
        if actor.id == user_id:
            raise InvalidRequest("You cannot delete your own account")
        user = await self._get(user_id)
        await self.db.delete(user)
        await self.db.commit()

        logger.info(f"🗑️ {actor.email} deleted user {user.email}")
        return {"message": "User deleted successfully"}
