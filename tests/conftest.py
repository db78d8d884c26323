# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import os

# Settings are read once, so the environment must be in place before any
# portal module is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_REGISTRATION_CODE"] = "let-me-in"

import pytest
from typing import AsyncGenerator, Awaitable, Callable, Dict
from uuid import UUID
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import portal.models  # noqa: F401
from portal.main import app
from portal.core.database import Base, get_db
from portal.core.security import get_password_hash, create_user_token, create_student_token
from portal.models.user import User, Student, UserRole, AccountStatus
from portal.services.content_service import ContentService

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

STAFF_PASSWORD = "secret123"
STUDENT_PASSWORD = "student123"

@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()

@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

# ============================================================================
# Accounts
# ============================================================================
def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def create_staff(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory for dashboard users of any role"""
    async def _create(role: UserRole = UserRole.ADMIN, email: str = None, status: AccountStatus = AccountStatus.ACTIVE) -> User:
        user = User(
            name=f"{role.value.title()} User",
            email=email or f"{role.value}@prepkart.in",
            password_hash=get_password_hash(STAFF_PASSWORD),
            role=role,
            status=status
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create

@pytest.fixture
async def admin_user(create_staff) -> User:
    return await create_staff(UserRole.ADMIN)

@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return bearer(create_user_token(admin_user.id, admin_user.role))

@pytest.fixture
def headers_for() -> Callable[[User], Dict[str, str]]:
    return lambda user: bearer(create_user_token(user.id, user.role))

@pytest.fixture
async def student(db_session: AsyncSession) -> Student:
    student = Student(
        first_name="Asha",
        last_name="Verma",
        email="asha@students.prepkart.in",
        password_hash=get_password_hash(STUDENT_PASSWORD),
        phone_number="+919800000001",
        class_name="Class 12",
        country="India",
        status=AccountStatus.ACTIVE
    )
    db_session.add(student)
    await db_session.commit()
    await db_session.refresh(student)
    return student

@pytest.fixture
def student_headers(student: Student) -> Dict[str, str]:
    return bearer(create_student_token(student.id))

# ============================================================================
# Content
# ============================================================================
@pytest.fixture
async def content_tree(db_session: AsyncSession) -> Dict[str, str]:
    """One node per level: JEE / Physics / Mechanics / Kinematics / ..."""
    names = {
        "exam": "jee main",
        "subject": "physics",
        "unit": "mechanics",
        "chapter": "kinematics",
        "topic": "motion in a line",
        "subtopic": "velocity",
        "definition": "average velocity",
    }
    ids: Dict[str, str] = {}
    parent = None
    for level, name in names.items():
        data = {"name": name}
        if parent:
            data[f"{parent}_id"] = UUID(ids[parent])
        node = await ContentService(db_session, level).create_node(data)
        ids[level] = node["id"]
        parent = level
    return ids
