"""
Errors raised by the team permission engine.

Every error carries a stable machine-readable code and the HTTP status the API
layer maps it to.
"""
from fastapi import status


class TeamPermissionError(Exception):
    """Base class for team permission errors."""

    code: str = "TEAM_PERMISSION_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class ValidationError(TeamPermissionError):
    """Malformed input, rejected before the user record is read."""

    INVALID_TEAM = "INVALID_TEAM"
    INVALID_ROLE = "INVALID_ROLE"

    code = INVALID_TEAM
    status_code = status.HTTP_400_BAD_REQUEST


class UnknownTeamError(TeamPermissionError):
    """A stored assignment references a team the registry does not define."""

    code = "UNKNOWN_TEAM"

    def __init__(self, team_id: str):
        super().__init__(f"Unknown team: {team_id}")
        self.team_id = team_id


class UserNotFoundError(TeamPermissionError):
    code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class NotStaffError(TeamPermissionError):
    code = "NOT_STAFF"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, user_id: str):
        super().__init__(f"Can only assign teams to staff members: {user_id}")
        self.user_id = user_id


class ConflictError(TeamPermissionError):
    """The requested change conflicts with the current assignment state."""

    DUPLICATE_ASSIGNMENT = "DUPLICATE_ASSIGNMENT"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    NO_OP = "NO_OP"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    code = DUPLICATE_ASSIGNMENT
    status_code = status.HTTP_409_CONFLICT


class StoreError(TeamPermissionError):
    """I/O failure against the user record store. Not retried by the service."""

    code = "STORE_ERROR"

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message)
        self.user_id = user_id


class StaleRecordError(Exception):
    """A conditional write found a newer version than the one that was read."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(f"Record {user_id} changed since version {expected_version}")
        self.user_id = user_id
        self.expected_version = expected_version
