# tests/conftest.py

import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SEED_DEFAULTS"] = "false"
os.environ["LOG_FILE"] = ""

from itertools import count

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.future import select
from sqlalchemy.pool import StaticPool

from taskdesk.database import Base, get_db
from taskdesk.main import app
from taskdesk.models import role, tasks, user  # noqa: F401
from taskdesk.models.role import Role
from taskdesk.models.user import User
from taskdesk.services.seed import seed_roles
from taskdesk.utils.security import get_password_hash

from helpers import PASSWORD

_ids = count(1)


@pytest.fixture()
async def session_factory():
    """Fresh in-memory database per test, with the four default roles."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as db:
        await seed_roles(db)
        await db.commit()

    yield factory
    await engine.dispose()


@pytest.fixture()
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(session_factory):
    """Insert an active user with the named role and return it (role loaded)."""
    async def _make(role_name: str = "User", *, username: str | None = None, full_name: str | None = None, is_active: bool = True) -> User:
        n = next(_ids)
        username = username or f"user{n}"
        async with session_factory() as db:
            result = await db.execute(select(Role).filter(Role.name == role_name))
            role_obj = result.scalars().first()
            new_user = User(
                full_name=full_name or f"Test User {n}",
                username=username,
                email=f"{username}@example.com",
                hashed_password=get_password_hash(PASSWORD),
                role_id=role_obj.role_id,
                is_active=is_active,
            )
            new_user.role = role_obj
            db.add(new_user)
            await db.commit()
            return new_user

    return _make


@pytest.fixture()
def make_role(session_factory):
    async def _make(name: str, **flags) -> Role:
        async with session_factory() as db:
            new_role = Role(name=name, **flags)
            db.add(new_role)
            await db.commit()
            return new_role

    return _make

