import pytest
from typing import AsyncGenerator, Any, Dict
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hims.main import app
from hims.core.permissions import permissions_for_role
from hims.core.security import create_access_token, get_password_hash
from hims.domain.auth.models import User, UserRole
from hims.infrastructure.database import Base, _import_models, get_db


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "Password123"


@pytest.fixture(scope="function")
async def engine():
    """One in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client; every request gets its own session, as in production."""

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


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, {
        "email": user.email,
        "role": user.role,
        "permissions": permissions_for_role(user.role),
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def make_user(db_session: AsyncSession):
    """Factory creating staff accounts directly in the database"""

    async def _make(role: UserRole = UserRole.ADMIN, email: str = None, **fields: Any) -> User:
        user = User(
            email=email or f"{role.value}@hospital.example.com",
            password_hash=get_password_hash(fields.pop("password", DEFAULT_PASSWORD)),
            first_name=fields.pop("first_name", role.value.replace("_", " ").title()),
            last_name=fields.pop("last_name", "Tester"),
            role=role.value,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture(scope="function")
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture(scope="function")
async def doctor_user(make_user) -> User:
    return await make_user(UserRole.DOCTOR, specialization="Surgery")


@pytest.fixture(scope="function")
async def admin_client(client: AsyncClient, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as an administrator."""
    client.headers.update(auth_headers(admin_user))
    yield client


@pytest.fixture(scope="function")
def sample_patient_data() -> dict:
    return {
        "first_name": "John",
        "last_name": "Doe",
        "date_of_birth": "1990-01-01",
        "gender": "male",
        "phone": "+254700000001",
        "email": "john.doe@example.com",
        "blood_group": "O+",
        "allergies": ["Penicillin"],
        "next_of_kin_name": "Jane Doe",
        "next_of_kin_phone": "+254700000002",
        "insurance_provider": "NHIF",
        "insurance_number": "NH-001",
    }


@pytest.fixture(scope="function")
async def patient(admin_client: AsyncClient, sample_patient_data: dict) -> Dict[str, Any]:
    response = await admin_client.post("/api/v1/patients", json=sample_patient_data)
    assert response.status_code == 201, response.text
    return response.json()["data"]
