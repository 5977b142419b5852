"""Shared fixtures: a temporary SQLite database with seeded services and slots."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.models.database import Base, Service, Slot

# Far enough ahead that the booking cutoff never hides seeded slots
BOOKING_DAY = datetime(2030, 5, 1)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions use separate connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Service 5 with slots 10, 11, 12 and 77 on BOOKING_DAY; service 6 without slots."""
    async with session_factory() as db:
        db.add_all([
            Service(
                id=5,
                name="Haircut",
                name_ru="Стрижка",
                name_en="Haircut",
                name_he="תספורת",
                duration_minutes=30,
            ),
            Service(id=6, name="Manicure", duration_minutes=60),
        ])
        await db.flush()

        for slot_id, hour in [(10, 9), (11, 10), (12, 11), (77, 15)]:
            start = BOOKING_DAY.replace(hour=hour)
            db.add(Slot(
                id=slot_id,
                service_id=5,
                start_at=start,
                end_at=start + timedelta(minutes=30),
            ))
        await db.commit()

    return session_factory


@pytest.fixture
def no_redis():
    """Keep conversation sessions in process memory."""
    with patch(
        "app.core.session.manager.get_redis",
        new=AsyncMock(return_value=None),
    ):
        yield
