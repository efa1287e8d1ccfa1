"""
FastAPI dependencies wiring the team permission engine.

The registry, store, audit sink and service are all provided through
dependencies so tests can swap any of them with app.dependency_overrides.
"""
from functools import lru_cache
from typing import Annotated, Iterable

from fastapi import Depends, HTTPException, status

from app.core import config
from app.core.database.engine import AsyncSessionLocal
from app.features.teams.audit import AuditSink, SqlAuditSink
from app.features.teams.registry import TeamDefinitionRegistry, build_default_registry
from app.features.teams.resolver import has_any_permission
from app.features.teams.service import TeamMembershipService
from app.features.teams.store import SqlUserRecordStore, UserRecordStore
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# Effective permissions that allow managing or viewing staff teams
MANAGE_TEAMS_PERMISSIONS = ("manage_all_teams", "manage_staff_roles")
VIEW_TEAMS_PERMISSIONS = ("view_all_teams",) + MANAGE_TEAMS_PERMISSIONS


@lru_cache(maxsize=1)
def get_team_registry() -> TeamDefinitionRegistry:
    """Team definitions from TEAM_DEFINITIONS_FILE, or the built-in teams."""
    if config.TEAM_DEFINITIONS_FILE:
        return TeamDefinitionRegistry.from_json_file(config.TEAM_DEFINITIONS_FILE)
    return build_default_registry()


def get_user_store() -> UserRecordStore:
    return SqlUserRecordStore(AsyncSessionLocal)


def get_audit_sink() -> AuditSink:
    return SqlAuditSink(AsyncSessionLocal)


def get_team_service(
    registry: Annotated[TeamDefinitionRegistry, Depends(get_team_registry)],
    store: Annotated[UserRecordStore, Depends(get_user_store)],
    audit_sink: Annotated[AuditSink, Depends(get_audit_sink)],
) -> TeamMembershipService:
    return TeamMembershipService(
        registry,
        store,
        audit_sink,
        max_retries=config.TEAM_UPDATE_MAX_RETRIES,
        bulk_concurrency=config.BULK_CONCURRENCY,
    )


def require_any_team_permission(permissions: Iterable[str]):
    """
    Dependency factory: the current user must be an admin or hold at least one
    of the given effective permissions.

    Usage:
        @router.post("/assign")
        async def assign(user: User = Depends(require_any_team_permission(MANAGE_TEAMS_PERMISSIONS))):
            ...
    """
    required = tuple(permissions)

    async def permission_dependency(
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if current_user.is_admin:
            return current_user
        if has_any_permission(current_user.effective_permissions or [], required):
            return current_user
        log.info("User %s denied: requires one of %s", current_user.id, required)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: requires one of {list(required)}"
        )

    return permission_dependency


require_team_manager = require_any_team_permission(MANAGE_TEAMS_PERMISSIONS)
require_team_viewer = require_any_team_permission(VIEW_TEAMS_PERMISSIONS)
