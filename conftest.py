import os
import tempfile

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="artisans-uploads-")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import artisans.models  # noqa: F401
from artisans.context import RequestContext
from artisans.database import Base, get_db
from artisans.main import app
from artisans.models.project import Project
from artisans.models.user import User, UserRole
from artisans.routers.auth import create_access_token, hash_password

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file database, each with its own connection, for racing writers."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """A session for service-level tests. Not shared with ``client``."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Factories ──

@pytest.fixture
def make_user(session_factory):
    """Create and commit a user in its own session."""
    async def _make(username, role=UserRole.CLIENT, email=None, points=500):
        async with session_factory() as session:
            user = User(
                username=username,
                email=(email or f"{username}@example.com").lower(),
                full_name=username.title(),
                password_hash=PASSWORD_HASH,
                role=role,
                points=points,
            )
            session.add(user)
            await session.commit()
            return user
    return _make


@pytest.fixture
def make_project(session_factory):
    async def _make(owner, name="Lakeside House"):
        async with session_factory() as session:
            project = Project(name=name, client_id=owner.id, location="Nairobi")
            session.add(project)
            await session.commit()
            return project
    return _make


@pytest.fixture
def auth():
    """Bearer headers for a user."""
    def _auth(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
    return _auth


async def add_user(db, username, role=UserRole.CLIENT, email=None, points=500):
    """Service-level helper: add a user to ``db`` and return a context for it."""
    user = User(
        username=username,
        email=(email or f"{username}@example.com").lower(),
        full_name=username.title(),
        password_hash=PASSWORD_HASH,
        role=role,
        points=points,
    )
    db.add(user)
    await db.flush()
    return user, RequestContext(user=user)
