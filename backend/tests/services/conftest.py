"""Service test fixtures — async DB, record stores, services + FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so the readiness probe sees the test engine
    - Services get their own OwnerLockRegistry (no state shared across tests)

Design Decisions:
    - SQLite in-memory: fast, no external dependency; the partial unique index
      is created there too (sqlite_where), so the one-default rule is backed by the schema in tests
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from storefront.db.base import Base
from storefront.infrastructure.database import get_db, DatabaseSessionManager
from storefront.infrastructure.owner_locks import OwnerLockRegistry
from storefront.infrastructure.record_store import SqlRecordStore
from storefront.models.address import Address
from storefront.models.cart import Cart
from storefront.services.address_service import AddressService
from storefront.services.cart_service import CartService
import storefront.infrastructure.database as db_module
from storefront.main import app


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def address_store(test_db):
    return SqlRecordStore(test_db, Address)


@pytest.fixture
def cart_store(test_db):
    return SqlRecordStore(test_db, Cart)


@pytest.fixture
def address_service(address_store):
    return AddressService(address_store, locks=OwnerLockRegistry())


@pytest.fixture
def cart_service(cart_store):
    return CartService(cart_store, locks=OwnerLockRegistry())


@pytest.fixture
def address_fields():
    """Factory for valid address field dicts."""
    def _make(**overrides):
        fields = {
            "house_flat_number": "12B",
            "street_area_name": "Boring Road",
            "complete_address": "Near Patna Women's College",
            "pincode": "800001",
            "city": "Patna",
            "phone": "9876543210",
        }
        fields.update(overrides)
        return fields
    return _make
