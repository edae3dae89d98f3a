"""Test configuration and fixtures."""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from decimal import Decimal
from typing import AsyncGenerator, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from cargo_manifest.main import app
from cargo_manifest.core.database import Base, get_db
from cargo_manifest.core.enums import ManifestStatus, ManifestType, ShipmentStatus
from cargo_manifest.core.security import create_access_token
from cargo_manifest.models.manifest import Manifest
from cargo_manifest.models.shipment import Shipment
from cargo_manifest.repositories.sql import SqlUnitOfWork


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ORIGIN_HUB = "hub-del"
DEST_HUB = "hub-bom"
STAFF_ID = "staff-0001"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """One in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def uow(db_session: AsyncSession) -> SqlUnitOfWork:
    return SqlUnitOfWork(db_session)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Authorization headers carrying a staff token."""
    return {"Authorization": f"Bearer {create_access_token(STAFF_ID)}"}


@pytest.fixture
def make_shipment(db_session: AsyncSession):
    """Factory inserting a shipment ready for manifesting."""
    counter = {"n": 0}

    async def _make(
        awb: Optional[str] = None,
        status: ShipmentStatus = ShipmentStatus.CREATED,
        destination_hub_id: str = DEST_HUB,
        package_count: int = 1,
        total_weight: str = "2.500",
        cod_amount: Optional[str] = None,
        receiver_name: str = "Asha Rao",
    ) -> Shipment:
        counter["n"] += 1
        shipment = Shipment(
            awb_number=awb or f"TAC{counter['n']:08d}",
            status=status,
            origin_hub_id=ORIGIN_HUB,
            destination_hub_id=destination_hub_id,
            package_count=package_count,
            total_weight=Decimal(total_weight),
            cod_amount=Decimal(cod_amount) if cod_amount is not None else None,
            receiver_name=receiver_name,
            sender_name="Acme Traders",
        )
        db_session.add(shipment)
        await db_session.commit()
        await db_session.refresh(shipment)
        return shipment

    return _make


@pytest.fixture
def make_manifest(db_session: AsyncSession):
    """Factory inserting a manifest directly, bypassing number allocation."""
    counter = {"n": 0}

    async def _make(
        status: ManifestStatus = ManifestStatus.BUILDING,
        to_hub_id: str = DEST_HUB,
        manifest_type: ManifestType = ManifestType.TRUCK,
    ) -> Manifest:
        counter["n"] += 1
        manifest = Manifest(
            manifest_no=f"MNF-2026-{900000 + counter['n']:06d}",
            type=manifest_type,
            from_hub_id=ORIGIN_HUB,
            to_hub_id=to_hub_id,
            status=status,
            vehicle_meta={"vehicle_no": "MH-01-AB-1234"},
            total_shipments=0,
            total_packages=0,
            total_weight=Decimal("0"),
            total_cod=Decimal("0"),
        )
        db_session.add(manifest)
        await db_session.commit()
        await db_session.refresh(manifest)
        return manifest

    return _make
