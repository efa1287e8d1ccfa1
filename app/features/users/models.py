"""
User model with ULID primary keys.

Staff accounts carry their team assignments and the effective permission set
derived from them. Those columns are written only by the team membership
service through SqlUserRecordStore.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import String, Boolean, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


USER_TYPE_STAFF = "staff"
USER_TYPE_CUSTOMER = "customer"


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.

    Uses ULID instead of auto-incrementing integers for better distributed systems support.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # "staff" or "customer"; only staff can join teams
    user_type: Mapped[str] = mapped_column(String(20), default=USER_TYPE_CUSTOMER, nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Permissions granted independently of any team
    base_permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # [{"team_id", "role", "assigned_at", "assigned_by"}, ...]
    teams: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # Cached union of base permissions and team grants, sorted
    effective_permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Bumped on every team/permission write; guards the conditional update
    permissions_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_staff(self) -> bool:
        return self.user_type == USER_TYPE_STAFF

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, type={self.user_type})>"
