"""Tests for team membership input and state checks."""

from __future__ import annotations

import pytest

from app.features.teams.errors import ConflictError, NotStaffError, ValidationError
from app.features.teams.schemas import TeamAssignment, TeamRole, UserPermissionRecord
from app.features.teams.validation import (
    ensure_assigned,
    ensure_not_assigned,
    ensure_role_change,
    ensure_staff,
    validate_role,
    validate_team_id,
)
from tests.fakes import FIXED_NOW


def _assignment(team_id: str, role: TeamRole = TeamRole.MEMBER) -> TeamAssignment:
    return TeamAssignment(team_id=team_id, role=role, assigned_at=FIXED_NOW, assigned_by="admin")


class TestValidateTeamId:
    def test_known_team_passes(self, registry) -> None:
        assert validate_team_id(registry, "finance") == "finance"

    @pytest.mark.parametrize("team_id", ["legal", "", "FINANCE"])
    def test_unknown_team_rejected(self, registry, team_id: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_team_id(registry, team_id)
        assert exc_info.value.code == ValidationError.INVALID_TEAM
        assert exc_info.value.status_code == 400


class TestValidateRole:
    def test_accepts_enum_and_string(self) -> None:
        assert validate_role(TeamRole.MANAGER) is TeamRole.MANAGER
        assert validate_role("member") is TeamRole.MEMBER

    @pytest.mark.parametrize("role", ["owner", "MANAGER", ""])
    def test_unknown_role_rejected(self, role: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_role(role)
        assert exc_info.value.code == ValidationError.INVALID_ROLE


class TestStateChecks:
    def test_ensure_staff(self) -> None:
        ensure_staff(UserPermissionRecord(user_id="u1", user_type="staff"))
        with pytest.raises(NotStaffError):
            ensure_staff(UserPermissionRecord(user_id="c1", user_type="customer"))

    def test_ensure_not_assigned(self) -> None:
        ensure_not_assigned([_assignment("support")], "finance")
        with pytest.raises(ConflictError) as exc_info:
            ensure_not_assigned([_assignment("finance")], "finance")
        assert exc_info.value.code == ConflictError.DUPLICATE_ASSIGNMENT
        assert exc_info.value.status_code == 409

    def test_ensure_assigned_returns_current(self) -> None:
        current = ensure_assigned([_assignment("support"), _assignment("finance", TeamRole.MANAGER)], "finance")
        assert current.role == TeamRole.MANAGER

    def test_ensure_assigned_missing(self) -> None:
        with pytest.raises(ConflictError) as exc_info:
            ensure_assigned([_assignment("support")], "finance")
        assert exc_info.value.code == ConflictError.NOT_A_MEMBER

    def test_ensure_role_change(self) -> None:
        ensure_role_change(_assignment("finance"), TeamRole.MANAGER)
        with pytest.raises(ConflictError) as exc_info:
            ensure_role_change(_assignment("finance"), TeamRole.MEMBER)
        assert exc_info.value.code == ConflictError.NO_OP
