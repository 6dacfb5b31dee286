import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from decimal import Decimal
from typing import AsyncGenerator, Optional
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.models import FeeStructure, Grade, Learner, Stream
from schoolfees.db.session import Base, get_db, get_session_factory
from schoolfees.main import app


@pytest.fixture()
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh SQLite file database per test; a file so concurrent sessions share it."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fees.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def admin_user() -> CurrentUser:
    return CurrentUser(id="admin-user", role="admin", email="bursar@example.com", permissions={})


@pytest.fixture()
async def client(session_factory: async_sessionmaker, admin_user: CurrentUser) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, authenticated as an admin."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = lambda: admin_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def grade(db_session: AsyncSession) -> Grade:
    grade = Grade(name="Grade 4")
    db_session.add(grade)
    await db_session.commit()
    return grade


@pytest.fixture()
async def stream(db_session: AsyncSession, grade: Grade) -> Stream:
    stream = Stream(grade_id=grade.id, name="East")
    db_session.add(stream)
    await db_session.commit()
    return stream


@pytest.fixture()
def add_learner(db_session: AsyncSession):
    counter = {"n": 0}

    async def _add(
        first_name: str,
        last_name: str = "Otieno",
        grade_id: Optional[UUID] = None,
        stream_id: Optional[UUID] = None,
        status: str = "active",
        is_staff_child: bool = False,
        parent_id: Optional[str] = None,
    ) -> Learner:
        counter["n"] += 1
        learner = Learner(
            admission_number=f"ADM{counter['n']:04d}",
            first_name=first_name,
            last_name=last_name,
            current_grade_id=grade_id,
            current_stream_id=stream_id,
            status=status,
            is_staff_child=is_staff_child,
            parent_id=parent_id,
        )
        db_session.add(learner)
        await db_session.commit()
        return learner

    return _add


@pytest.fixture()
def add_structure(db_session: AsyncSession):
    async def _add(grade_id: UUID, amount: str, academic_year: str = "2025", term: str = "term_1") -> FeeStructure:
        structure = FeeStructure(grade_id=grade_id, academic_year=academic_year, term=term, amount=Decimal(amount))
        db_session.add(structure)
        await db_session.commit()
        return structure

    return _add
