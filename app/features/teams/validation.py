"""
Input and state checks for team membership changes.

validate_* functions look only at the request and the registry and run before
the user record is read. ensure_* functions check the fetched record and raise
before anything is written.
"""
from collections.abc import Sequence

from app.features.teams.errors import ConflictError, NotStaffError, ValidationError
from app.features.teams.registry import TeamDefinitionRegistry
from app.features.teams.schemas import TeamAssignment, TeamRole, UserPermissionRecord
from app.utils import get_logger


log = get_logger(__name__)


def validate_team_id(registry: TeamDefinitionRegistry, team_id: str) -> str:
    if not team_id or team_id not in registry:
        log.debug("Rejected unknown team id %r", team_id)
        raise ValidationError(f"Invalid team ID: {team_id!r}", code=ValidationError.INVALID_TEAM)
    return team_id


def validate_role(role: TeamRole | str) -> TeamRole:
    """Accept a TeamRole or its string value."""
    try:
        return TeamRole(role)
    except ValueError:
        log.debug("Rejected unknown team role %r", role)
        allowed = ", ".join(r.value for r in TeamRole)
        raise ValidationError(
            f"Invalid role {role!r}. Must be one of: {allowed}",
            code=ValidationError.INVALID_ROLE,
        ) from None


def ensure_staff(record: UserPermissionRecord) -> None:
    if not record.is_staff:
        raise NotStaffError(record.user_id)


def ensure_not_assigned(teams: Sequence[TeamAssignment], team_id: str) -> None:
    if any(t.team_id == team_id for t in teams):
        raise ConflictError(
            f"User is already assigned to team {team_id}",
            code=ConflictError.DUPLICATE_ASSIGNMENT,
        )


def ensure_assigned(teams: Sequence[TeamAssignment], team_id: str) -> TeamAssignment:
    """Return the current assignment for team_id or raise NOT_A_MEMBER."""
    for assignment in teams:
        if assignment.team_id == team_id:
            return assignment
    raise ConflictError(
        f"User is not a member of team {team_id}",
        code=ConflictError.NOT_A_MEMBER,
    )


def ensure_role_change(current: TeamAssignment, new_role: TeamRole) -> None:
    if current.role == new_role:
        raise ConflictError(
            f"User already has role {new_role.value} in team {current.team_id}",
            code=ConflictError.NO_OP,
        )
