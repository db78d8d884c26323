# ============================================================================
# Authentication & Security
# ============================================================================
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from portal.config import get_settings
from portal.models.user import UserRole

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_TYPE_USER = "user"
TOKEN_TYPE_STUDENT = "student"

# Actions a role may perform; HTTP verbs plus the user-management capability
MANAGE_USERS = "MANAGE_USERS"
_CONTENT_WRITE = {"GET", "POST", "PUT", "PATCH", "DELETE"}

ROLE_PERMISSIONS: Dict[UserRole, frozenset] = {
    UserRole.VIEWER: frozenset({"GET"}),
    UserRole.EDITOR: frozenset({"GET", "PUT", "PATCH"}),
    UserRole.MODERATOR: frozenset(_CONTENT_WRITE),
    UserRole.SUPER_MODERATOR: frozenset(_CONTENT_WRITE),
    UserRole.ADMIN: frozenset(_CONTENT_WRITE | {MANAGE_USERS}),
}

def has_permission(role: UserRole, action: str) -> bool:
    return action.upper() in ROLE_PERMISSIONS.get(role, frozenset())

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def create_user_token(user_id: str, role: UserRole) -> str:
    return create_access_token({"sub": str(user_id), "role": role.value, "type": TOKEN_TYPE_USER})

def create_student_token(student_id: str) -> str:
    return create_access_token(
        {"sub": str(student_id), "type": TOKEN_TYPE_STUDENT},
        expires_delta=timedelta(days=settings.STUDENT_TOKEN_EXPIRE_DAYS)
    )

def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
