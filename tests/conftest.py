import os

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["GALLERY_AI_API_KEY"] = "test-vision-key"
os.environ["GALLERY_AI_API_URL"] = "https://vision.iaschool.mx/v1/chat/completions"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from iaschool.core.database import get_db
from iaschool.core.rate_limiter import rate_limiter
from iaschool.main import app
from iaschool.models import Base, UserRole

from .factories import (
    create_school, create_user, create_group, create_student, link_tutor
)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'iaschool.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
async def school(db):
    return await create_school(db)


@pytest.fixture
async def other_school(db):
    return await create_school(db, code="IAS02", name="IA School Sur")


@pytest.fixture
async def admin(db, school):
    return await create_user(db, school, role=UserRole.ADMIN, email="direccion@iaschool.mx", name="Laura Méndez")


@pytest.fixture
async def teacher(db, school):
    return await create_user(db, school, role=UserRole.PROFESOR, email="profesor@iaschool.mx", name="Jorge Ruiz")


@pytest.fixture
async def parent(db, school):
    return await create_user(db, school, role=UserRole.PADRE, email="padre@iaschool.mx", name="Carlos López")


@pytest.fixture
async def other_parent(db, school):
    return await create_user(db, school, role=UserRole.PADRE, email="madre@iaschool.mx", name="Marta Díaz")


@pytest.fixture
async def group(db, school, teacher):
    return await create_group(db, school, teacher=teacher)


@pytest.fixture
async def student(db, school, group):
    return await create_student(db, school, group=group)


@pytest.fixture
async def tutor_link(db, student, parent):
    return await link_tutor(db, student, parent, is_primary_contact=True)
