"""Shared test fixtures and configuration."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from provider_sync.adapters.registry import RegistryClient, get_registry_client
from provider_sync.config import get_settings
from provider_sync.database import Base, get_db
from provider_sync.main import app
from provider_sync.models.customer import (
    SYSTEM_CUSTOMER_KEY,
    SYSTEM_CUSTOMER_NAME,
    Customer,
    ProviderGroup,
)
from provider_sync.models.provider import Provider
from provider_sync.schemas.registry import ProviderListPage

get_settings.cache_clear()


# Test database URL (in-memory SQLite for speed)
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


def list_item(npi: str, **fields: Any) -> dict[str, Any]:
    """A registry list item as the registry would send it."""
    return {"providerNPI": npi, **fields}


def list_page(items: list[dict[str, Any]], total_pages: int = 1) -> ProviderListPage:
    return ProviderListPage.model_validate(
        {"listResponseModel": items, "totalPages": total_pages}
    )


def paged_list(*pages: list[dict[str, Any]]):
    """``list_providers`` side effect serving ``pages`` by page number."""

    async def _list_providers(page: int, page_size: int) -> ProviderListPage:
        return list_page(pages[page - 1], total_pages=len(pages))

    return _list_providers


@pytest_asyncio.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def registry() -> MagicMock:
    """Registry client double; every call returns an empty result by default."""
    client = MagicMock(spec=RegistryClient)
    client.list_providers = AsyncMock(return_value=list_page([]))
    client.update_provider = AsyncMock(return_value={})
    client.set_emdr_registration = AsyncMock(return_value={})
    client.set_electronic_only = AsyncMock(return_value={})
    client.get_provider_registration = AsyncMock()
    return client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, registry: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and registry overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry_client] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def system_customer(db_session: AsyncSession) -> Customer:
    customer = Customer(
        name=SYSTEM_CUSTOMER_NAME,
        description="Sentinel",
        system_key=SYSTEM_CUSTOMER_KEY,
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest_asyncio.fixture
async def test_customer(db_session: AsyncSession) -> Customer:
    customer = Customer(name="Acme Health", description="Test customer")
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest_asyncio.fixture
async def test_group(db_session: AsyncSession, test_customer: Customer) -> ProviderGroup:
    group = ProviderGroup(customer_id=test_customer.id, name="Cardiology")
    db_session.add(group)
    await db_session.commit()
    return group


@pytest_asyncio.fixture
async def test_provider(db_session: AsyncSession, test_customer: Customer) -> Provider:
    """A provider with a full address and a registry id."""
    provider = Provider(
        npi="1000000001",
        name="Dr. Ada Lovelace",
        street="1 Main St",
        city="Springfield",
        state="IL",
        zip="62701",
        remote_provider_id="P-1",
        customer_id=test_customer.id,
    )
    db_session.add(provider)
    await db_session.commit()
    return provider
