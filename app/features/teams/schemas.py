"""
Pydantic schemas for team-based permissions.

Domain records passed between the store and the membership service, operation
results, and request bodies for the team API.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer


# ============================================================================
# Teams
# ============================================================================

class TeamRole(str, Enum):
    """Role held within a team."""
    MEMBER = "member"
    MANAGER = "manager"


class TeamAccessLevel(str, Enum):
    NO_ACCESS = "no_access"
    MEMBER = "member"
    MANAGER = "manager"


class TeamDefinition(BaseModel):
    """
    Static definition of a team and the permissions it grants.

    manager_permissions is expected to be a superset of default_permissions,
    but nothing enforces it.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    responsibilities: tuple[str, ...] = ()
    default_permissions: frozenset[str] = frozenset()
    manager_permissions: frozenset[str] = frozenset()

    @field_serializer("default_permissions", "manager_permissions")
    def _sorted_permissions(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    def permissions_for(self, role: TeamRole) -> frozenset[str]:
        if role == TeamRole.MANAGER:
            return self.manager_permissions
        return self.default_permissions


class TeamAssignment(BaseModel):
    """Join record linking one user to one team with one role."""
    team_id: str
    role: TeamRole
    assigned_at: datetime
    assigned_by: str


class UserPermissionRecord(BaseModel):
    """
    The permission-relevant slice of a user account.

    effective_permissions is a cache of resolve(base_permissions, teams) and is
    only rewritten together with teams. version increases on every write.
    """
    user_id: str
    email: str = ""
    name: str = ""
    user_type: str = "staff"
    base_permissions: List[str] = []
    teams: List[TeamAssignment] = []
    effective_permissions: List[str] = []
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_staff(self) -> bool:
        return self.user_type == "staff"

    def find_assignment(self, team_id: str) -> Optional[TeamAssignment]:
        for assignment in self.teams:
            if assignment.team_id == team_id:
                return assignment
        return None


# ============================================================================
# Permission diffs and operation results
# ============================================================================

class PermissionDiff(BaseModel):
    added: List[str] = []
    removed: List[str] = []
    unchanged: List[str] = []


class MembershipChange(BaseModel):
    """Result of a single assign / remove / role update."""
    record: UserPermissionRecord
    added: List[str] = []
    removed: List[str] = []
    total_permissions: int


class BulkAssignFailure(BaseModel):
    user_id: str
    error: str
    code: str


class BulkAssignResult(BaseModel):
    successful: List[str] = []
    failed: List[BulkAssignFailure] = []


class RecalculationResult(BaseModel):
    user_id: str
    effective_permissions: List[str]
    team_count: int
    added: List[str] = []
    removed: List[str] = []


class RecalculationFailure(BaseModel):
    user_id: str
    error: str
    code: str


class RecalculateAllResult(BaseModel):
    processed: int = 0
    total: int = 0
    errors: List[RecalculationFailure] = []


# ============================================================================
# Read models
# ============================================================================

class EnrichedTeamAssignment(TeamAssignment):
    team_name: str
    team_description: str


class TeamAccessSummary(BaseModel):
    total_teams: int
    manager_teams: List[str]
    member_teams: List[str]
    total_permissions: int


class UserTeamInfo(BaseModel):
    user_id: str
    email: str
    name: str
    user_type: str
    teams: List[EnrichedTeamAssignment]
    base_permissions: List[str]
    effective_permissions: List[str]
    summary: TeamAccessSummary


class TeamMemberSummary(BaseModel):
    user_id: str
    email: str
    name: str
    role: TeamRole
    assigned_at: datetime
    assigned_by: str


class TeamStats(BaseModel):
    team_id: str
    name: str
    total_members: int
    manager_count: int
    member_count: int


class TeamDetails(BaseModel):
    team: TeamDefinition
    stats: TeamStats
    members: List[TeamMemberSummary]


class UnassignedStaffUser(BaseModel):
    user_id: str
    email: str
    name: str
    updated_at: Optional[datetime] = None


# ============================================================================
# Audit
# ============================================================================

class AuditEvent(BaseModel):
    """Permission change emitted to the audit sink after a successful write."""
    user_id: str
    team_id: Optional[str] = None
    action: str
    old_permissions: List[str]
    new_permissions: List[str]
    added: List[str]
    removed: List[str]
    actor: str
    timestamp: datetime


# ============================================================================
# Request bodies
# ============================================================================

# team_id and role stay plain strings here so that the validation layer, not
# the request parser, reports INVALID_TEAM / INVALID_ROLE.

class AssignUserToTeam(BaseModel):
    user_id: str = Field(..., min_length=1, description="User ID")
    team_id: str = Field(..., min_length=1, description="Team ID")
    role: str = Field(TeamRole.MEMBER.value, description="Role in the team: member or manager")


class RemoveUserFromTeam(BaseModel):
    user_id: str = Field(..., min_length=1, description="User ID")
    team_id: str = Field(..., min_length=1, description="Team ID")


class UpdateTeamRole(BaseModel):
    user_id: str = Field(..., min_length=1, description="User ID")
    team_id: str = Field(..., min_length=1, description="Team ID")
    role: str = Field(..., description="New role in the team")


class BulkAssignUsersToTeam(BaseModel):
    user_ids: List[str] = Field(..., min_length=1, max_length=500, description="User IDs to assign")
    team_id: str = Field(..., min_length=1, description="Team ID")
    role: str = Field(TeamRole.MEMBER.value, description="Role in the team")


class RecalculatePermissions(BaseModel):
    user_id: Optional[str] = Field(None, min_length=1, description="Recalculate one user; all staff when omitted")


class MembershipChangeResponse(BaseModel):
    user_id: str
    team_id: str
    added: List[str]
    removed: List[str]
    total_permissions: int
    effective_permissions: List[str]
