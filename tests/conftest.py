import os

os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal")
os.environ.setdefault("API_KEY_PEPPER", "test-pepper")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Import Base + all models so metadata is complete
from app.models import Base
from app.models.admin import Admin
from app.models.agent import Agent
from app.models.api_key import ApiKey
from app.models.user import User

from app.core.db import create_engine, get_db
from app.core.security import generate_api_key, hash_password
from app.main import app
from app.schemas.property import PropertyCreate
from app.services import listing_lifecycle
from app.services.auth import Actor
from app.services.ledger import LedgerStore, get_ledger
from app.services.storage import LocalImageStore, get_image_store

PASSWORD = "s3cret-pass"
PASSWORD_HASH = hash_password(PASSWORD)


def _test_db_url(tmp_path) -> str:
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{(tmp_path / 'ledger.db').as_posix()}"


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    engine = create_engine(_test_db_url(tmp_path))
    try:
        # fresh schema per test
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
def ledger(session_factory):
    return LedgerStore(session_factory, lock_timeout_ms=5000)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def _with_key(db: AsyncSession, *, role: str, principal_id: str) -> tuple[Actor, str]:
    key = generate_api_key()
    row = ApiKey(role=role, principal_id=principal_id, key_prefix=key.prefix, key_hash=key.hashed, is_active=True)
    db.add(row)
    await db.flush()
    return Actor(role=role, principal_id=principal_id, api_key_id=row.id), key.plain


@pytest_asyncio.fixture
async def seed(session_factory):
    """Two members, an approved agent, a pending agent and an admin, each with an API key. Committed."""
    async with session_factory() as db:
        seller = User(name="Sam Seller", email="seller@test.com", phone="100", password_hash=PASSWORD_HASH)
        buyer = User(name="Bea Buyer", email="buyer@test.com", phone="200", password_hash=PASSWORD_HASH)
        buyer2 = User(name="Ben Buyer", email="buyer2@test.com", phone="201", password_hash=PASSWORD_HASH)
        agent = Agent(
            name="Ada Agent",
            email="agent@test.com",
            phone="300",
            area="North",
            password_hash=PASSWORD_HASH,
            status="approved",
        )
        pending_agent = Agent(
            name="Pat Pending",
            email="pending@test.com",
            phone="301",
            password_hash=PASSWORD_HASH,
            status="pending",
        )
        admin = Admin(name="Alex Admin", email="admin@test.com", password_hash=PASSWORD_HASH)
        db.add_all([seller, buyer, buyer2, agent, pending_agent, admin])
        await db.flush()

        seller_actor, seller_key = await _with_key(db, role="seller", principal_id=seller.id)
        buyer_actor, buyer_key = await _with_key(db, role="seller", principal_id=buyer.id)
        buyer2_actor, buyer2_key = await _with_key(db, role="seller", principal_id=buyer2.id)
        agent_actor, agent_key = await _with_key(db, role="agent", principal_id=agent.id)
        admin_actor, admin_key = await _with_key(db, role="admin", principal_id=admin.id)
        await db.commit()

    return {
        "seller": seller_actor,
        "buyer": buyer_actor,
        "buyer2": buyer2_actor,
        "agent": agent_actor,
        "admin": admin_actor,
        "pending_agent_id": pending_agent.id,
        "password": PASSWORD,
        "keys": {
            "seller": seller_key,
            "buyer": buyer_key,
            "buyer2": buyer2_key,
            "agent": agent_key,
            "admin": admin_key,
        },
    }


def sample_property(**overrides) -> PropertyCreate:
    fields = {
        "title": "Sea view flat",
        "type": "flat",
        "purpose": "sale",
        "location": "Kyrenia",
        "description": "Two bedrooms, close to the harbour",
        "market_amount": Decimal("120"),
    }
    fields.update(overrides)
    return PropertyCreate(**fields)


@pytest.fixture
def make_property():
    return sample_property


@pytest_asyncio.fixture
async def pending_property(ledger, seed) -> str:
    return await listing_lifecycle.submit_property(ledger=ledger, actor=seed["seller"], fields=sample_property())


@pytest_asyncio.fixture
async def live_property(ledger, seed, pending_property) -> str:
    agent = seed["agent"]
    await listing_lifecycle.set_pricing(
        ledger=ledger,
        actor=agent,
        property_id=pending_property,
        final_amount=Decimal("100"),
        govt_amount=Decimal("90"),
    )
    await listing_lifecycle.attach_image(
        ledger=ledger, actor=agent, property_id=pending_property, image_path="file:///img/front.jpg"
    )
    await listing_lifecycle.verify_property(ledger=ledger, actor=agent, property_id=pending_property)
    return pending_property


@pytest_asyncio.fixture
async def client(session_factory, ledger, tmp_path):
    """
    HTTP client bound to the test database through dependency overrides.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    image_store = LocalImageStore(str(tmp_path / "uploads"))

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_image_store] = lambda: image_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
