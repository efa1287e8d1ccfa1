"""
Team membership service.

Owns the assignment lifecycle for staff users. Every mutating operation runs
the same cycle:

    validate input -> fetch record -> mutate teams in memory -> resolve
    effective permissions -> diff -> conditional write -> audit -> return

Validation and conflict errors are raised before anything is written. When the
conditional write loses a race with another writer for the same user, the whole
cycle is repeated from the fetch, up to max_retries attempts, after which a
ConflictError(CONCURRENT_MODIFICATION) is raised. Store failures propagate as
StoreError and are not retried here.

Bulk assignment and recalculation of all staff fan out over users with bounded
concurrency and report per-user outcomes instead of failing fast.
"""
import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Optional, TypeVar

from app.features.teams.audit import AuditSink
from app.features.teams.errors import ConflictError, StaleRecordError, TeamPermissionError, UserNotFoundError
from app.features.teams.registry import TeamDefinitionRegistry
from app.features.teams.resolver import diff_permissions, resolve_effective_permissions, team_access_summary
from app.features.teams.schemas import (
    AuditEvent,
    BulkAssignFailure,
    BulkAssignResult,
    EnrichedTeamAssignment,
    MembershipChange,
    RecalculateAllResult,
    RecalculationFailure,
    RecalculationResult,
    TeamAssignment,
    TeamDefinition,
    TeamDetails,
    TeamMemberSummary,
    TeamRole,
    TeamStats,
    UnassignedStaffUser,
    UserPermissionRecord,
    UserTeamInfo,
)
from app.features.teams.store import UserRecordStore
from app.features.teams.validation import (
    ensure_assigned,
    ensure_not_assigned,
    ensure_role_change,
    ensure_staff,
    validate_role,
    validate_team_id,
)
from app.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")

# Builds the new team list from the fetched record and the write timestamp
TeamMutation = Callable[[UserPermissionRecord, datetime], list[TeamAssignment]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_code(error: Exception) -> str:
    if isinstance(error, TeamPermissionError):
        return error.code
    return "INTERNAL_ERROR"


class TeamMembershipService:
    """
    Entry point for every change to a staff user's teams and effective
    permissions.
    """

    def __init__(
        self,
        registry: TeamDefinitionRegistry,
        store: UserRecordStore,
        audit_sink: Optional[AuditSink] = None,
        *,
        max_retries: int = 3,
        bulk_concurrency: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if bulk_concurrency < 1:
            raise ValueError("bulk_concurrency must be at least 1")
        self.registry = registry
        self._store = store
        self._audit_sink = audit_sink
        self._max_retries = max_retries
        self._bulk_concurrency = bulk_concurrency
        self._clock = clock

    # ========================================================================
    # Assignment lifecycle
    # ========================================================================

    async def assign_user_to_team(
        self,
        user_id: str,
        team_id: str,
        role: TeamRole | str,
        assigned_by: str
    ) -> MembershipChange:
        """
        Add a team assignment to a staff user.

        Raises:
            ValidationError: unknown team or role
            UserNotFoundError / NotStaffError: bad target user
            ConflictError: DUPLICATE_ASSIGNMENT, or CONCURRENT_MODIFICATION
            StoreError: store failure
        """
        validate_team_id(self.registry, team_id)
        team_role = validate_role(role)

        def add_assignment(record: UserPermissionRecord, now: datetime) -> list[TeamAssignment]:
            ensure_staff(record)
            ensure_not_assigned(record.teams, team_id)
            assignment = TeamAssignment(
                team_id=team_id,
                role=team_role,
                assigned_at=now,
                assigned_by=assigned_by,
            )
            return [*record.teams, assignment]

        change = await self._apply_change(user_id, team_id, "assign", assigned_by, add_assignment)
        log.info(
            "Team assignment completed: user=%s team=%s role=%s by=%s added=%d total=%d",
            user_id, team_id, team_role.value, assigned_by, len(change.added), change.total_permissions,
        )
        return change

    async def remove_user_from_team(
        self,
        user_id: str,
        team_id: str,
        removed_by: str
    ) -> MembershipChange:
        """Drop the user's assignment to team_id. NOT_A_MEMBER if there is none."""
        validate_team_id(self.registry, team_id)

        def drop_assignment(record: UserPermissionRecord, now: datetime) -> list[TeamAssignment]:
            ensure_assigned(record.teams, team_id)
            return [t for t in record.teams if t.team_id != team_id]

        change = await self._apply_change(user_id, team_id, "remove", removed_by, drop_assignment)
        log.info(
            "Team removal completed: user=%s team=%s by=%s removed=%d total=%d",
            user_id, team_id, removed_by, len(change.removed), change.total_permissions,
        )
        return change

    async def update_user_team_role(
        self,
        user_id: str,
        team_id: str,
        new_role: TeamRole | str,
        updated_by: str
    ) -> MembershipChange:
        """
        Change the user's role in team_id.

        The assignment keeps its position; assigned_at and assigned_by are
        rewritten to the time of the change and the updating actor.
        NOT_A_MEMBER if unassigned, NO_OP if the role is unchanged.
        """
        validate_team_id(self.registry, team_id)
        team_role = validate_role(new_role)

        def change_role(record: UserPermissionRecord, now: datetime) -> list[TeamAssignment]:
            current = ensure_assigned(record.teams, team_id)
            ensure_role_change(current, team_role)
            return [
                t.model_copy(update={"role": team_role, "assigned_at": now, "assigned_by": updated_by})
                if t.team_id == team_id else t
                for t in record.teams
            ]

        change = await self._apply_change(user_id, team_id, "update_role", updated_by, change_role)
        log.info(
            "Team role update completed: user=%s team=%s role=%s by=%s added=%d removed=%d",
            user_id, team_id, team_role.value, updated_by, len(change.added), len(change.removed),
        )
        return change

    async def bulk_assign_users_to_team(
        self,
        user_ids: Sequence[str],
        team_id: str,
        role: TeamRole | str,
        assigned_by: str
    ) -> BulkAssignResult:
        """
        Assign each user independently. One user's failure neither blocks nor
        undoes another's assignment; failures are reported per user.

        The team and role are validated once before any user is touched, so a
        malformed request raises ValidationError instead of failing every item.
        """
        validate_team_id(self.registry, team_id)
        team_role = validate_role(role)

        outcomes = await self._fan_out(
            list(user_ids),
            lambda user_id: self.assign_user_to_team(user_id, team_id, team_role, assigned_by),
        )

        result = BulkAssignResult()
        for user_id, error in outcomes:
            if error is None:
                result.successful.append(user_id)
            else:
                result.failed.append(
                    BulkAssignFailure(user_id=user_id, error=str(error), code=_error_code(error))
                )

        log.info(
            "Bulk team assignment: team=%s role=%s by=%s successful=%d failed=%d",
            team_id, team_role.value, assigned_by, len(result.successful), len(result.failed),
        )
        return result

    # ========================================================================
    # Recalculation
    # ========================================================================

    async def recalculate_user_permissions(self, user_id: str, actor: str = "system") -> RecalculationResult:
        """
        Re-derive effective permissions from the stored base permissions and
        teams without touching the assignments. Used after team definitions
        change. Running it twice in a row yields the same permissions.
        """
        for attempt in range(1, self._max_retries + 1):
            record = await self._fetch(user_id)
            effective = resolve_effective_permissions(self.registry, record.base_permissions, record.teams)
            diff = diff_permissions(record.effective_permissions, effective)
            now = self._clock()
            try:
                await self._store.update(
                    user_id,
                    teams=record.teams,
                    effective_permissions=effective,
                    updated_at=now,
                    expected_version=record.version,
                )
            except StaleRecordError:
                log.warning("Concurrent update of user %s during recalculation (attempt %d)", user_id, attempt)
                continue

            if diff.added or diff.removed:
                await self._emit_audit(AuditEvent(
                    user_id=user_id,
                    team_id=None,
                    action="recalculate",
                    old_permissions=record.effective_permissions,
                    new_permissions=effective,
                    added=diff.added,
                    removed=diff.removed,
                    actor=actor,
                    timestamp=now,
                ))

            log.info(
                "Recalculated permissions: user=%s teams=%d permissions=%d added=%d removed=%d",
                user_id, len(record.teams), len(effective), len(diff.added), len(diff.removed),
            )
            return RecalculationResult(
                user_id=user_id,
                effective_permissions=effective,
                team_count=len(record.teams),
                added=diff.added,
                removed=diff.removed,
            )

        raise self._concurrent_modification(user_id)

    async def recalculate_all_staff_permissions(self, actor: str = "system") -> RecalculateAllResult:
        """
        Recalculate every staff user. Per-user failures are collected in
        errors; users already processed stay updated.
        """
        staff = await self._store.list_staff()
        outcomes = await self._fan_out(
            [record.user_id for record in staff],
            lambda user_id: self.recalculate_user_permissions(user_id, actor=actor),
        )

        result = RecalculateAllResult(total=len(staff))
        for user_id, error in outcomes:
            if error is None:
                result.processed += 1
            else:
                result.errors.append(
                    RecalculationFailure(user_id=user_id, error=str(error), code=_error_code(error))
                )

        log.info(
            "Recalculated all staff permissions: processed=%d total=%d errors=%d",
            result.processed, result.total, len(result.errors),
        )
        return result

    # ========================================================================
    # Read-only queries
    # ========================================================================

    def list_teams(self) -> list[TeamDefinition]:
        return self.registry.definitions()

    async def get_user_team_info(self, user_id: str) -> UserTeamInfo:
        """Current assignments enriched with team metadata, plus cached permissions."""
        record = await self._fetch(user_id)
        enriched = []
        for assignment in record.teams:
            definition = self.registry.lookup(assignment.team_id)
            enriched.append(EnrichedTeamAssignment(
                **assignment.model_dump(),
                team_name=definition.name,
                team_description=definition.description,
            ))
        return UserTeamInfo(
            user_id=record.user_id,
            email=record.email,
            name=record.name,
            user_type=record.user_type,
            teams=enriched,
            base_permissions=sorted(record.base_permissions),
            effective_permissions=record.effective_permissions,
            summary=team_access_summary(self.registry, record.teams, record.effective_permissions),
        )

    async def get_team_members(self, team_id: str) -> list[TeamMemberSummary]:
        validate_team_id(self.registry, team_id)
        staff = await self._store.list_staff()
        return self._members_of(team_id, staff)

    async def get_team_details(self, team_id: str) -> TeamDetails:
        validate_team_id(self.registry, team_id)
        definition = self.registry.lookup(team_id)
        members = self._members_of(team_id, await self._store.list_staff())
        return TeamDetails(
            team=definition,
            stats=self._stats_for(definition, members),
            members=members,
        )

    async def get_all_team_stats(self) -> list[TeamStats]:
        staff = await self._store.list_staff()
        return [
            self._stats_for(definition, self._members_of(definition.id, staff))
            for definition in self.registry.definitions()
        ]

    async def get_unassigned_staff(self) -> list[UnassignedStaffUser]:
        """Staff users with no team assignment at all."""
        staff = await self._store.list_staff()
        return [
            UnassignedStaffUser(
                user_id=record.user_id,
                email=record.email,
                name=record.name or record.email,
                updated_at=record.updated_at,
            )
            for record in staff
            if not record.teams
        ]

    # ========================================================================
    # Internals
    # ========================================================================

    async def _fetch(self, user_id: str) -> UserPermissionRecord:
        record = await self._store.get(user_id)
        if record is None:
            raise UserNotFoundError(user_id)
        return record

    async def _apply_change(
        self,
        user_id: str,
        team_id: str,
        action: str,
        actor: str,
        mutate: TeamMutation
    ) -> MembershipChange:
        for attempt in range(1, self._max_retries + 1):
            record = await self._fetch(user_id)
            now = self._clock()
            new_teams = mutate(record, now)
            effective = resolve_effective_permissions(self.registry, record.base_permissions, new_teams)
            diff = diff_permissions(record.effective_permissions, effective)

            try:
                updated = await self._store.update(
                    user_id,
                    teams=new_teams,
                    effective_permissions=effective,
                    updated_at=now,
                    expected_version=record.version,
                )
            except StaleRecordError:
                log.warning(
                    "Concurrent update of user %s during %s on team %s (attempt %d/%d)",
                    user_id, action, team_id, attempt, self._max_retries,
                )
                continue

            await self._emit_audit(AuditEvent(
                user_id=user_id,
                team_id=team_id,
                action=action,
                old_permissions=record.effective_permissions,
                new_permissions=effective,
                added=diff.added,
                removed=diff.removed,
                actor=actor,
                timestamp=now,
            ))
            return MembershipChange(
                record=updated,
                added=diff.added,
                removed=diff.removed,
                total_permissions=len(effective),
            )

        raise self._concurrent_modification(user_id)

    def _concurrent_modification(self, user_id: str) -> ConflictError:
        log.error("Giving up on user %s after %d conflicting writes", user_id, self._max_retries)
        return ConflictError(
            f"User {user_id} was modified concurrently; retry the request",
            code=ConflictError.CONCURRENT_MODIFICATION,
        )

    async def _emit_audit(self, event: AuditEvent) -> None:
        # Audit failures never undo or block the permission change.
        if self._audit_sink is None:
            return
        try:
            await self._audit_sink.emit(event)
        except Exception:
            log.exception(
                "Failed to emit audit event: user=%s action=%s team=%s",
                event.user_id, event.action, event.team_id,
            )

    async def _fan_out(
        self,
        user_ids: list[str],
        operation: Callable[[str], Awaitable[T]]
    ) -> list[tuple[str, Optional[Exception]]]:
        """Run operation per user with bounded concurrency; keep input order."""
        semaphore = asyncio.Semaphore(self._bulk_concurrency)

        async def run_one(user_id: str) -> tuple[str, Optional[Exception]]:
            async with semaphore:
                try:
                    await operation(user_id)
                    return user_id, None
                except TeamPermissionError as e:
                    log.info("Operation failed for user %s: %s (%s)", user_id, e.message, e.code)
                    return user_id, e
                except Exception as e:
                    log.exception("Unexpected error for user %s", user_id)
                    return user_id, e

        return list(await asyncio.gather(*(run_one(user_id) for user_id in user_ids)))

    @staticmethod
    def _members_of(team_id: str, staff: Sequence[UserPermissionRecord]) -> list[TeamMemberSummary]:
        members = []
        for record in staff:
            assignment = record.find_assignment(team_id)
            if assignment is not None:
                members.append(TeamMemberSummary(
                    user_id=record.user_id,
                    email=record.email,
                    name=record.name or record.email,
                    role=assignment.role,
                    assigned_at=assignment.assigned_at,
                    assigned_by=assignment.assigned_by,
                ))
        return members

    @staticmethod
    def _stats_for(definition: TeamDefinition, members: Sequence[TeamMemberSummary]) -> TeamStats:
        managers = sum(1 for m in members if m.role == TeamRole.MANAGER)
        return TeamStats(
            team_id=definition.id,
            name=definition.name,
            total_members=len(members),
            manager_count=managers,
            member_count=len(members) - managers,
        )
