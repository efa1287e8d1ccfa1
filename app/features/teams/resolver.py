"""
Effective permission resolution.

Pure functions: no I/O, no mutation of their arguments. The membership service
calls resolve_effective_permissions after every change to a user's teams and
diff_permissions to build the audit payload.
"""
from collections.abc import Iterable, Sequence

from app.features.teams.registry import TeamDefinitionRegistry
from app.features.teams.schemas import (
    PermissionDiff,
    TeamAccessLevel,
    TeamAccessSummary,
    TeamAssignment,
    TeamRole,
)


# ============================================================================
# Resolution
# ============================================================================

def permissions_for_role(
    registry: TeamDefinitionRegistry,
    team_id: str,
    role: TeamRole
) -> frozenset[str]:
    """Permissions a single assignment grants. Raises UnknownTeamError."""
    return registry.lookup(team_id).permissions_for(role)


def resolve_effective_permissions(
    registry: TeamDefinitionRegistry,
    base_permissions: Iterable[str],
    assignments: Sequence[TeamAssignment]
) -> list[str]:
    """
    Union of base permissions and every assignment's team grant.

    Managers receive the team's manager_permissions, members its
    default_permissions. The result is sorted so equal inputs always produce
    equal output. Adding an assignment can only grow the result.

    Raises:
        UnknownTeamError: an assignment references a team the registry lacks
    """
    effective = set(base_permissions)
    for assignment in assignments:
        effective |= permissions_for_role(registry, assignment.team_id, assignment.role)
    return sorted(effective)


def diff_permissions(old: Iterable[str], new: Iterable[str]) -> PermissionDiff:
    """Set difference between two permission snapshots, sorted."""
    old_set = set(old)
    new_set = set(new)
    return PermissionDiff(
        added=sorted(new_set - old_set),
        removed=sorted(old_set - new_set),
        unchanged=sorted(old_set & new_set),
    )


# ============================================================================
# Permission and team checks
# ============================================================================

def has_permission(effective_permissions: Iterable[str], permission: str) -> bool:
    return permission in set(effective_permissions)


def has_any_permission(effective_permissions: Iterable[str], permissions: Iterable[str]) -> bool:
    effective = set(effective_permissions)
    return any(p in effective for p in permissions)


def has_all_permissions(effective_permissions: Iterable[str], permissions: Iterable[str]) -> bool:
    effective = set(effective_permissions)
    return all(p in effective for p in permissions)


def is_team_member(assignments: Sequence[TeamAssignment], team_id: str) -> bool:
    return any(a.team_id == team_id for a in assignments)


def is_team_manager(assignments: Sequence[TeamAssignment], team_id: str) -> bool:
    return any(a.team_id == team_id and a.role == TeamRole.MANAGER for a in assignments)


def team_access_level(assignments: Sequence[TeamAssignment], team_id: str) -> TeamAccessLevel:
    for assignment in assignments:
        if assignment.team_id == team_id:
            if assignment.role == TeamRole.MANAGER:
                return TeamAccessLevel.MANAGER
            return TeamAccessLevel.MEMBER
    return TeamAccessLevel.NO_ACCESS


def team_access_summary(
    registry: TeamDefinitionRegistry,
    assignments: Sequence[TeamAssignment],
    effective_permissions: Sequence[str]
) -> TeamAccessSummary:
    """Team names grouped by role plus permission count, for display and logs."""
    manager_teams: list[str] = []
    member_teams: list[str] = []
    for assignment in assignments:
        definition = registry.get(assignment.team_id)
        name = definition.name if definition else assignment.team_id
        if assignment.role == TeamRole.MANAGER:
            manager_teams.append(name)
        else:
            member_teams.append(name)
    return TeamAccessSummary(
        total_teams=len(assignments),
        manager_teams=manager_teams,
        member_teams=member_teams,
        total_permissions=len(effective_permissions),
    )
