import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  register every table on Base.metadata
from app.db.database import Base
from app.core.config import settings
from app.models.enums import PlatformType
from app.services.platform_clients import PlatformClientPool
from tests.factories import FakePlatform, create_integration, wholesale_config, woo_config


@pytest.fixture
async def test_engine():
    """Create test database engine with a fresh in-memory schema."""
    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
async def clients(platform):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(platform.handler))
    pool = PlatformClientPool(http_client=http_client)
    yield pool
    await pool.aclose()
    await http_client.aclose()


@pytest.fixture
async def woo_integration(db_session):
    return await create_integration(db_session, PlatformType.WOOCOMMERCE, woo_config(), name="Storefront")


@pytest.fixture
async def wholesale_integration(db_session):
    return await create_integration(db_session, PlatformType.WHOLESALE_APP, wholesale_config(), name="Wholesale app")
