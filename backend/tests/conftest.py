# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("FIRECRAWL_API_KEY", None)

from models import Base, User, Profile, Member, WorkspaceRole  # noqa: E402
from auth import AuthService  # noqa: E402
from database import get_db_session  # noqa: E402
from tenancy import TenancyService  # noqa: E402
from main import app  # noqa: E402

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(db: AsyncSession, email: str, full_name: str) -> User:
    """Insert an identity plus its profile directly"""
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
        is_active=True,
    )
    db.add(user)
    await db.flush()
    db.add(Profile(id=user.id, email=email, full_name=full_name))
    await db.commit()
    await db.refresh(user)
    return user


async def add_member(db: AsyncSession, workspace_id: str, user: User, role: WorkspaceRole) -> Member:
    member = Member(workspace_id=workspace_id, user_id=user.id, role=role)
    db.add(member)
    await db.commit()
    return member


@pytest_asyncio.fixture
async def owner_user(db_session):
    return await create_user(db_session, "owner@foresight.dev", "Olivia Owner")


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await create_user(db_session, "admin@foresight.dev", "Adam Admin")


@pytest_asyncio.fixture
async def member_user(db_session):
    return await create_user(db_session, "member@foresight.dev", "Mia Member")


@pytest_asyncio.fixture
async def viewer_user(db_session):
    return await create_user(db_session, "viewer@foresight.dev", "Victor Viewer")


@pytest_asyncio.fixture
async def outsider_user(db_session):
    return await create_user(db_session, "outsider@foresight.dev", "Otto Outsider")


@pytest_asyncio.fixture
async def workspace(db_session, owner_user):
    """Workspace owned by owner_user, created the way the API does it"""
    return await TenancyService.create_workspace_with_owner(db_session, "Acme", owner_user.id)


@pytest_asyncio.fixture
async def team(db_session, workspace, admin_user, member_user, viewer_user):
    """Populate the workspace with one admin, one member and one viewer"""
    await add_member(db_session, workspace.id, admin_user, WorkspaceRole.ADMIN)
    await add_member(db_session, workspace.id, member_user, WorkspaceRole.MEMBER)
    await add_member(db_session, workspace.id, viewer_user, WorkspaceRole.VIEWER)
    return workspace


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


def fail_commit_on(monkeypatch, model):
    """Make the next commit that inserts a `model` row fail like a lost unique-key race"""
    original = AsyncSession.commit
    state = {"armed": True}

    async def commit(self):
        if state["armed"] and any(isinstance(obj, model) for obj in self.new):
            state["armed"] = False
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        return await original(self)

    monkeypatch.setattr(AsyncSession, "commit", commit)
