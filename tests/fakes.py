"""
In-process test doubles for the user record store and audit sink.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional, Sequence

from app.features.teams.errors import StaleRecordError, StoreError
from app.features.teams.schemas import AuditEvent, TeamAssignment, UserPermissionRecord

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

# Fixture teams: FINANCE and SUPPORT
FINANCE = {
    "id": "finance",
    "name": "Finance Team",
    "description": "Billing and refunds",
    "default_permissions": ["VIEW_BILLING"],
    "manager_permissions": ["VIEW_BILLING", "REFUND"],
}
SUPPORT = {
    "id": "support",
    "name": "Support Team",
    "description": "Customer tickets",
    "default_permissions": ["VIEW_TICKETS", "RESPOND_TICKETS"],
    "manager_permissions": ["VIEW_TICKETS", "RESPOND_TICKETS", "ASSIGN_TICKETS"],
}


class InMemoryUserRecordStore:
    """Dict-backed store with the same conditional-write contract as the SQL store.

    Every call yields to the event loop first so concurrent operations interleave
    between their read and their write.
    """

    def __init__(self) -> None:
        self.records: dict[str, UserPermissionRecord] = {}
        self.get_calls = 0
        self.update_calls = 0

    def add(
        self,
        user_id: str,
        *,
        base_permissions: Sequence[str] = (),
        user_type: str = "staff",
        teams: Sequence[TeamAssignment] = (),
        effective_permissions: Optional[Sequence[str]] = None,
    ) -> UserPermissionRecord:
        record = UserPermissionRecord(
            user_id=user_id,
            email=f"{user_id}@example.com",
            name=user_id.upper(),
            user_type=user_type,
            base_permissions=sorted(base_permissions),
            teams=list(teams),
            effective_permissions=sorted(
                base_permissions if effective_permissions is None else effective_permissions
            ),
        )
        self.records[user_id] = record
        return record

    async def get(self, user_id: str) -> Optional[UserPermissionRecord]:
        self.get_calls += 1
        await asyncio.sleep(0)
        record = self.records.get(user_id)
        return record.model_copy(deep=True) if record is not None else None

    async def update(
        self,
        user_id: str,
        *,
        teams: Sequence[TeamAssignment],
        effective_permissions: Sequence[str],
        updated_at: datetime,
        expected_version: int,
    ) -> UserPermissionRecord:
        self.update_calls += 1
        await asyncio.sleep(0)
        current = self.records.get(user_id)
        if current is None or current.version != expected_version:
            raise StaleRecordError(user_id, expected_version)
        updated = current.model_copy(
            update={
                "teams": [t.model_copy() for t in teams],
                "effective_permissions": list(effective_permissions),
                "updated_at": updated_at,
                "version": current.version + 1,
            },
            deep=True,
        )
        self.records[user_id] = updated
        return updated.model_copy(deep=True)

    async def list_staff(self) -> list[UserPermissionRecord]:
        await asyncio.sleep(0)
        return [r.model_copy(deep=True) for r in self.records.values() if r.is_staff]


class AlwaysStaleStore(InMemoryUserRecordStore):
    """Every conditional write loses the race."""

    async def update(self, user_id: str, *, expected_version: int, **kwargs) -> UserPermissionRecord:
        self.update_calls += 1
        raise StaleRecordError(user_id, expected_version)


class BrokenStore(InMemoryUserRecordStore):
    """Reads work, writes fail with a store error."""

    async def update(self, user_id: str, **kwargs) -> UserPermissionRecord:
        self.update_calls += 1
        raise StoreError(f"connection reset while updating {user_id}", user_id=user_id)


class SlowStore(InMemoryUserRecordStore):
    """Tracks how many reads are in flight at once."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.max_active = 0

    async def get(self, user_id: str) -> Optional[UserPermissionRecord]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().get(user_id)
        finally:
            self.active -= 1


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


class FailingAuditSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def emit(self, event: AuditEvent) -> None:
        self.attempts += 1
        raise RuntimeError("audit backend unavailable")
