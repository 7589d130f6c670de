'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any code is imported.
2. Providing a fresh, seeded in-memory database session for each test.
3. Providing an httpx AsyncClient wired to the app for endpoint testing.
4. Providing instances of all service classes, pre-injected with the test db session.
'''

import os

os.environ["TEST_MODE"] = "True"

import pytest
from typing import AsyncGenerator

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine

# --- Constant Imports ----
from tests.constants import (
    TEST_ADMIN_ID,
    TEST_TEACHER_ID,
    TEST_UNRELATED_TEACHER_ID,
    TEST_PARENT_ID,
    TEST_UNRELATED_PARENT_ID,
    TEST_STUDENT_ID,
    TEST_UNLINKED_STUDENT_ID,
    TEST_UNRELATED_STUDENT_ID,
)

# --- Application Imports ---
from tabunganku_backend.main import app
from tabunganku_backend.common.config import settings
from tabunganku_backend.database import models as db_models
from tabunganku_backend.database.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    get_db_session,
)
from tabunganku_backend.services.security import JWTHandler
from tabunganku_backend.services.user_service import UserService, AdminService
from tabunganku_backend.services.student_service import StudentService
from tabunganku_backend.services.auth_service import LoginService
from tabunganku_backend.services.transaction_service import TransactionService
from tabunganku_backend.services.saving_schedule_service import SavingScheduleService
from tabunganku_backend.services.recap_service import RecapService
from tests.database.seed_test_db import seed_data


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio' (solves 'trio' error).
    2. Promotes the scope to 'session' (solves 'ScopeMismatch').
    """
    return "asyncio"


# --- 1. Database Fixtures ---

@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """A brand new in-memory database per test: nothing leaks between tests."""
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    engine = build_engine(settings.DATABASE_URL_TEST)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """A session on the seeded test database."""
    session_factory = build_session_factory(db_engine)
    async with session_factory() as session:
        await seed_data(session)
        yield session


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    An async client talking to the app in-process.

    Every request shares the test's `db_session`, so a test can check through
    the services what an endpoint wrote. The app's lifespan is not run; the
    override makes the global engine unnecessary.
    """
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


# --- 2. Service Fixtures ---

@pytest.fixture(scope="function")
def user_service(db_session: AsyncSession) -> UserService:
    return UserService(db_session)

@pytest.fixture(scope="function")
def admin_service(db_session: AsyncSession) -> AdminService:
    return AdminService(db_session)

@pytest.fixture(scope="function")
def student_service(db_session: AsyncSession) -> StudentService:
    return StudentService(db_session)

@pytest.fixture(scope="function")
def login_service(user_service: UserService, student_service: StudentService) -> LoginService:
    return LoginService(user_service, student_service)

@pytest.fixture(scope="function")
def transaction_service(db_session: AsyncSession) -> TransactionService:
    return TransactionService(db_session)

@pytest.fixture(scope="function")
def saving_schedule_service(db_session: AsyncSession) -> SavingScheduleService:
    return SavingScheduleService(db_session)

@pytest.fixture(scope="function")
def recap_service(db_session: AsyncSession) -> RecapService:
    return RecapService(db_session)


# --- 3. Seeded ORM Objects ---

@pytest.fixture(scope="function")
async def test_admin_orm(db_session: AsyncSession) -> db_models.Profiles:
    admin = await db_session.get(db_models.Profiles, TEST_ADMIN_ID)
    assert admin is not None, f"Admin with ID {TEST_ADMIN_ID} not found in test DB."
    return admin

@pytest.fixture(scope="function")
async def test_teacher_orm(db_session: AsyncSession) -> db_models.Profiles:
    teacher = await db_session.get(db_models.Profiles, TEST_TEACHER_ID)
    assert teacher is not None, f"Teacher with ID {TEST_TEACHER_ID} not found in test DB."
    return teacher

@pytest.fixture(scope="function")
async def test_unrelated_teacher_orm(db_session: AsyncSession) -> db_models.Profiles:
    teacher = await db_session.get(db_models.Profiles, TEST_UNRELATED_TEACHER_ID)
    assert teacher is not None, f"Teacher with ID {TEST_UNRELATED_TEACHER_ID} not found in test DB."
    return teacher

@pytest.fixture(scope="function")
async def test_parent_orm(db_session: AsyncSession) -> db_models.Profiles:
    parent = await db_session.get(db_models.Profiles, TEST_PARENT_ID)
    assert parent is not None, f"Parent with ID {TEST_PARENT_ID} not found in test DB."
    return parent

@pytest.fixture(scope="function")
async def test_unrelated_parent_orm(db_session: AsyncSession) -> db_models.Profiles:
    parent = await db_session.get(db_models.Profiles, TEST_UNRELATED_PARENT_ID)
    assert parent is not None, f"Parent with ID {TEST_UNRELATED_PARENT_ID} not found in test DB."
    return parent

@pytest.fixture(scope="function")
async def test_student_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_STUDENT_ID)
    assert student is not None, f"Student with ID {TEST_STUDENT_ID} not found in test DB."
    return student

@pytest.fixture(scope="function")
async def test_unlinked_student_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_UNLINKED_STUDENT_ID)
    assert student is not None, f"Student with ID {TEST_UNLINKED_STUDENT_ID} not found in test DB."
    return student

@pytest.fixture(scope="function")
async def test_unrelated_student_orm(db_session: AsyncSession) -> db_models.Students:
    student = await db_session.get(db_models.Students, TEST_UNRELATED_STUDENT_ID)
    assert student is not None, f"Student with ID {TEST_UNRELATED_STUDENT_ID} not found in test DB."
    return student


# --- 4. Auth Helpers ---

def auth_headers_for(email: str) -> dict:
    """Bearer headers for the profile with `email`, skipping the login round-trip."""
    token = JWTHandler.create_access_token(subject=email)
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture(scope="function")
def admin_headers(test_admin_orm: db_models.Profiles) -> dict:
    return auth_headers_for(test_admin_orm.email)

@pytest.fixture(scope="function")
def teacher_headers(test_teacher_orm: db_models.Profiles) -> dict:
    return auth_headers_for(test_teacher_orm.email)

@pytest.fixture(scope="function")
def unrelated_teacher_headers(test_unrelated_teacher_orm: db_models.Profiles) -> dict:
    return auth_headers_for(test_unrelated_teacher_orm.email)

@pytest.fixture(scope="function")
def parent_headers(test_parent_orm: db_models.Profiles) -> dict:
    return auth_headers_for(test_parent_orm.email)

@pytest.fixture(scope="function")
def auth_headers():
    """Factory fixture: headers for an arbitrary email, existing or not."""
    return auth_headers_for
