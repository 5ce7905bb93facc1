"""Shared test fixtures.

Every test gets its own in-memory SQLite database. The app's ``get_db``
dependency is overridden to hand out sessions bound to it, with the same
commit/rollback behaviour as production.
"""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gymcourt.core.config import settings
from gymcourt.core.database import get_db
from gymcourt.main import app
from gymcourt.models import Base, Court, Package, PriceRule, PriceTier, Profile, UserRole

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]
WEEKDAYS = [1, 2, 3, 4, 5]


def _auth_headers(user_id: str) -> dict:
    token = jwt.encode({"sub": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture
async def client(session_factory):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def seed_data(session_factory):
    """Two courts, a complete rule catalog, one package and two profiles.

    Rates: 60,000/h everywhere, 100,000/h on weekdays 18:00-22:00.
    """
    async with session_factory() as db:
        pink = Court(slug="pink", name="Pink Court", color="#db2777", sort_order=0)
        mint = Court(slug="mint", name="Mint Court", color="#059669", sort_order=1)
        db.add_all([pink, mint])
        await db.flush()

        db.add_all(
            [
                PriceRule(
                    name="Base",
                    tier=PriceTier.BASE,
                    days_of_week=ALL_DAYS,
                    start_time="00:00:00",
                    end_time="24:00:00",
                    price_per_hour=60000,
                    priority=0,
                ),
                PriceRule(
                    name="Weekday evening",
                    tier=PriceTier.S,
                    days_of_week=WEEKDAYS,
                    start_time="18:00:00",
                    end_time="22:00:00",
                    price_per_hour=100000,
                    priority=10,
                ),
            ]
        )
        package = Package(
            name="Evening block",
            court_id=pink.id,
            days_of_week=None,
            start_time="18:00:00",
            end_time="22:00:00",
            total_price=300000,
            badge_text="Best value",
        )
        db.add(package)

        admin = Profile(id="admin-1", email="admin@gymcourt.test", name="Admin Park", role=UserRole.ADMIN)
        member = Profile(id="member-1", email="member@example.com", name="Member Lee", phone="010-1111-2222")
        db.add_all([admin, member])
        await db.commit()

        return SimpleNamespace(pink=pink, mint=mint, package=package, admin=admin, member=member)


@pytest.fixture
def admin_headers(seed_data):
    return _auth_headers(seed_data.admin.id)


@pytest.fixture
def member_headers(seed_data):
    return _auth_headers(seed_data.member.id)
