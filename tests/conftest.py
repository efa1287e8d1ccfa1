"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
import pytest_asyncio

# Never touch the development database from tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from app.core.database.engine import build_engine, build_session_factory, init_db  # noqa: E402
from app.features.teams.registry import TeamDefinitionRegistry  # noqa: E402
from app.features.teams.service import TeamMembershipService  # noqa: E402
from app.features.teams.store import SqlUserRecordStore  # noqa: E402
from app.features.users.models import User  # noqa: E402
from tests.fakes import FINANCE, FIXED_NOW, SUPPORT, InMemoryUserRecordStore, RecordingAuditSink  # noqa: E402


@pytest.fixture
def registry() -> TeamDefinitionRegistry:
    """FINANCE and SUPPORT fixture teams."""
    return TeamDefinitionRegistry.from_mapping([FINANCE, SUPPORT])


@pytest.fixture
def memory_store() -> InMemoryUserRecordStore:
    return InMemoryUserRecordStore()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def service(registry, memory_store, audit_sink) -> TeamMembershipService:
    """Service over the in-memory store with a fixed clock."""
    return TeamMembershipService(registry, memory_store, audit_sink, clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# SQL-backed fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite file database with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'teams.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def sql_store(session_factory) -> SqlUserRecordStore:
    return SqlUserRecordStore(session_factory)


@pytest.fixture
def make_user(session_factory):
    """Insert a user row and return its id."""

    async def _make_user(
        user_id: str,
        *,
        user_type: str = "staff",
        base_permissions: tuple[str, ...] = (),
    ) -> str:
        async with session_factory() as session:
            session.add(
                User(
                    id=user_id,
                    appwrite_id=f"aw-{user_id}",
                    email=f"{user_id}@example.com",
                    name=user_id.upper(),
                    user_type=user_type,
                    base_permissions=sorted(base_permissions),
                    teams=[],
                    effective_permissions=sorted(base_permissions),
                )
            )
            await session.commit()
        return user_id

    return _make_user
