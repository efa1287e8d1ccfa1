"""
User record store used by the membership service.

The service depends on the UserRecordStore protocol; SqlUserRecordStore is the
SQLAlchemy implementation over the users table. Each call opens its own
short-lived session, and update() is conditional on the version observed at
read time.
"""
from datetime import datetime
from typing import Optional, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.teams.errors import StaleRecordError, StoreError
from app.features.teams.schemas import TeamAssignment, UserPermissionRecord
from app.features.users.models import USER_TYPE_STAFF, User
from app.utils import get_logger


log = get_logger(__name__)


class UserRecordStore(Protocol):
    async def get(self, user_id: str) -> Optional[UserPermissionRecord]:
        ...

    async def update(
        self,
        user_id: str,
        *,
        teams: Sequence[TeamAssignment],
        effective_permissions: Sequence[str],
        updated_at: datetime,
        expected_version: int,
    ) -> UserPermissionRecord:
        ...

    async def list_staff(self) -> list[UserPermissionRecord]:
        ...


def user_to_record(user: User) -> UserPermissionRecord:
    return UserPermissionRecord(
        user_id=user.id,
        email=user.email,
        name=user.name,
        user_type=user.user_type,
        base_permissions=list(user.base_permissions or []),
        teams=[TeamAssignment.model_validate(t) for t in (user.teams or [])],
        effective_permissions=list(user.effective_permissions or []),
        updated_at=user.updated_at,
        version=user.permissions_version,
    )


class SqlUserRecordStore:
    """UserRecordStore backed by the users table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, user_id: str) -> Optional[UserPermissionRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(User.id == user_id))
                user = result.scalar_one_or_none()
                return user_to_record(user) if user is not None else None
        except SQLAlchemyError as e:
            log.error("Failed to read user %s: %s", user_id, e)
            raise StoreError(f"Failed to read user {user_id}: {e}", user_id=user_id) from e

    async def update(
        self,
        user_id: str,
        *,
        teams: Sequence[TeamAssignment],
        effective_permissions: Sequence[str],
        updated_at: datetime,
        expected_version: int,
    ) -> UserPermissionRecord:
        """
        Write teams and effective permissions if the stored version still
        equals expected_version, bumping the version.

        Raises:
            StaleRecordError: another writer got there first (or the row is gone)
            StoreError: database failure
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.permissions_version == expected_version)
            .values(
                teams=[t.model_dump(mode="json") for t in teams],
                effective_permissions=list(effective_permissions),
                updated_at=updated_at,
                permissions_version=User.permissions_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    if result.rowcount == 0:
                        raise StaleRecordError(user_id, expected_version)
                    refreshed = await session.execute(select(User).where(User.id == user_id))
                    return user_to_record(refreshed.scalar_one())
        except SQLAlchemyError as e:
            log.error("Failed to update user %s: %s", user_id, e)
            raise StoreError(f"Failed to update user {user_id}: {e}", user_id=user_id) from e

    async def list_staff(self) -> list[UserPermissionRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(User).where(User.user_type == USER_TYPE_STAFF).order_by(User.id)
                )
                return [user_to_record(u) for u in result.scalars().all()]
        except SQLAlchemyError as e:
            log.error("Failed to list staff users: %s", e)
            raise StoreError(f"Failed to list staff users: {e}") from e
