"""
Team management API routes.

Lists teams, shows membership, and changes staff team assignments. Every
change goes through TeamMembershipService; engine errors are turned into HTTP
responses by the handler registered in app.main.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Request

from app.core.limiter import limiter
from app.features.teams.dependencies import get_team_service, require_team_manager, require_team_viewer
from app.features.teams.schemas import (
    AssignUserToTeam,
    BulkAssignResult,
    BulkAssignUsersToTeam,
    MembershipChange,
    MembershipChangeResponse,
    RecalculateAllResult,
    RecalculatePermissions,
    RecalculationResult,
    RemoveUserFromTeam,
    TeamDefinition,
    TeamDetails,
    TeamMemberSummary,
    TeamStats,
    UnassignedStaffUser,
    UpdateTeamRole,
    UserTeamInfo,
)
from app.features.teams.service import TeamMembershipService
from app.features.users.models import User


router = APIRouter()

Service = Annotated[TeamMembershipService, Depends(get_team_service)]
Manager = Annotated[User, Depends(require_team_manager)]
Viewer = Annotated[User, Depends(require_team_viewer)]


def _change_response(user_id: str, team_id: str, change: MembershipChange) -> MembershipChangeResponse:
    return MembershipChangeResponse(
        user_id=user_id,
        team_id=team_id,
        added=change.added,
        removed=change.removed,
        total_permissions=change.total_permissions,
        effective_permissions=change.record.effective_permissions,
    )


# ============================================================================
# Team queries
# ============================================================================

@router.get("")
async def list_teams(service: Service, _viewer: Viewer):
    """List all team definitions."""
    teams: List[TeamDefinition] = service.list_teams()
    return {"teams": [t.model_dump(mode="json") for t in teams], "count": len(teams)}


@router.get("/stats", response_model=List[TeamStats])
async def get_team_stats(service: Service, _viewer: Viewer):
    """Member counts per team."""
    return await service.get_all_team_stats()


@router.get("/unassigned", response_model=List[UnassignedStaffUser])
async def get_unassigned_staff(service: Service, _viewer: Viewer):
    """Staff users without any team."""
    return await service.get_unassigned_staff()


@router.get("/users/{user_id}", response_model=UserTeamInfo)
async def get_user_team_info(user_id: str, service: Service, _viewer: Viewer):
    """A user's teams, base permissions and effective permissions."""
    return await service.get_user_team_info(user_id)


@router.get("/{team_id}", response_model=TeamDetails)
async def get_team_details(team_id: str, service: Service, _viewer: Viewer):
    """Team definition with member list and stats."""
    return await service.get_team_details(team_id)


@router.get("/{team_id}/members", response_model=List[TeamMemberSummary])
async def get_team_members(team_id: str, service: Service, _viewer: Viewer):
    return await service.get_team_members(team_id)


# ============================================================================
# Assignment changes
# ============================================================================

@router.post("/assign", response_model=MembershipChangeResponse)
async def assign_user_to_team(body: AssignUserToTeam, service: Service, current_user: Manager):
    """Assign a staff user to a team."""
    change = await service.assign_user_to_team(body.user_id, body.team_id, body.role, current_user.id)
    return _change_response(body.user_id, body.team_id, change)


@router.delete("/assign", response_model=MembershipChangeResponse)
async def remove_user_from_team(body: RemoveUserFromTeam, service: Service, current_user: Manager):
    """Remove a user from a team."""
    change = await service.remove_user_from_team(body.user_id, body.team_id, current_user.id)
    return _change_response(body.user_id, body.team_id, change)


@router.put("/assign/role", response_model=MembershipChangeResponse)
async def update_user_team_role(body: UpdateTeamRole, service: Service, current_user: Manager):
    """Change a user's role within a team."""
    change = await service.update_user_team_role(body.user_id, body.team_id, body.role, current_user.id)
    return _change_response(body.user_id, body.team_id, change)


@router.post("/bulk-assign", response_model=BulkAssignResult)
@limiter.limit("30/minute")
async def bulk_assign_users_to_team(
    request: Request,
    body: BulkAssignUsersToTeam,
    service: Service,
    current_user: Manager,
):
    """
    Assign many users to one team. Partial success is a normal outcome: check
    the failed list.
    """
    return await service.bulk_assign_users_to_team(body.user_ids, body.team_id, body.role, current_user.id)


@router.post("/recalculate", response_model=RecalculationResult | RecalculateAllResult)
@limiter.limit("10/minute")
async def recalculate_permissions(
    request: Request,
    body: RecalculatePermissions,
    service: Service,
    current_user: Manager,
):
    """
    Re-derive effective permissions after team definitions change: one user
    when user_id is given, otherwise every staff user.
    """
    if body.user_id is not None:
        return await service.recalculate_user_permissions(body.user_id, actor=current_user.id)
    return await service.recalculate_all_staff_permissions(actor=current_user.id)
