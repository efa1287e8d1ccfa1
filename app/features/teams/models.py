"""
Audit log model for team permission changes.

One row per successful assignment, removal, role change or recalculation that
changed a user's effective permissions.
"""
from typing import Any, Dict
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class AuditLog(Base, TimestampMixin):
    """
    Audit trail entry: who changed whose permissions, how, and what moved.

    details holds old/new permission snapshots and the added/removed diff.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor performing the change
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # User whose permissions changed
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    team_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, team={self.team_id})>"
