"""
Audit sink for permission changes.
"""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.teams.models import AuditLog
from app.features.teams.schemas import AuditEvent
from app.utils import get_logger


log = get_logger(__name__)


class AuditSink(Protocol):
    async def emit(self, event: AuditEvent) -> None:
        ...


class SqlAuditSink:
    """Writes each event as an AuditLog row in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def emit(self, event: AuditEvent) -> None:
        audit_log = AuditLog(
            actor_id=event.actor,
            user_id=event.user_id,
            action=event.action,
            team_id=event.team_id,
            details={
                "old_permissions": event.old_permissions,
                "new_permissions": event.new_permissions,
                "added": event.added,
                "removed": event.removed,
                "timestamp": event.timestamp.isoformat(),
            },
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(audit_log)

        log.info(
            "Audit: actor=%s action=%s user=%s team=%s added=%d removed=%d",
            event.actor, event.action, event.user_id, event.team_id,
            len(event.added), len(event.removed),
        )
