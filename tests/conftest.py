from __future__ import annotations

import os

# Settings are read at import time; point them at a throwaway database first.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///./farm_access_test.db")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from farm_access.core.mail import get_mail_sender  # noqa: E402
from farm_access.db.session import get_db  # noqa: E402

# Ensure Base + models are registered before create_all
from farm_access.db.base import Base  # noqa: E402
import farm_access.models  # noqa: E402,F401

from farm_access.core.role_bindings import seed_catalog  # noqa: E402

from factories import RecordingMailSender  # noqa: E402


# ---------------------------------------------------------
# Engine + schema lifecycle (one SQLite file per test)
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'farm_access.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # SQLite leaves foreign keys off unless asked; the farm teardown order relies on them.
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )


# ---------------------------------------------------------
# 🔑 AUTOUSE: every test starts with the fixed catalog
# ---------------------------------------------------------
@pytest_asyncio.fixture(autouse=True)
async def _catalog(sessionmaker):
    async with sessionmaker() as session:
        await seed_catalog(session)
    yield


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & direct calls into the core.
    The factory helpers commit, so API requests on other sessions see their rows.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# Mail sender double
# ---------------------------------------------------------
@pytest.fixture()
def mailer() -> RecordingMailSender:
    return RecordingMailSender()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker, mailer):
    from farm_access.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_mail_sender] = lambda: mailer
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac
