import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from askq import models
from askq.database import Base, get_db
from askq.main import app
from askq.routers.chat_router import get_rng
from askq.utils import generate_token

# Use an in-memory SQLite database for test isolation
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite://"


class FixedRng:
    """Stands in for random.Random with a constant draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rng] = lambda: FixedRng(0.99)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


async def make_session(db, email: str = "ada@example.com"):
    """Create a verified user with a live session token."""
    user = models.User(email=email, verified=True)
    db.add(user)
    await db.flush()
    token = generate_token()
    db.add(models.Session(user_id=user.id, token=token))
    await db.commit()
    return user, token


@pytest_asyncio.fixture
async def lenient_client(session_factory):
    """Client that receives the app's 500 response instead of the raised error."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
