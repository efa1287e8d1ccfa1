"""
Recalculate effective permissions for every staff user.

Run after editing team definitions so cached permissions catch up.

Usage:
    uv run python -m scripts.recalculate_permissions
    uv run python -m scripts.recalculate_permissions --user <user_id>

Exits 0 when every user was processed, 1 otherwise.
"""
import argparse
import asyncio
import sys

from app.core.database.engine import init_db
from app.features.teams.dependencies import get_audit_sink, get_team_registry, get_team_service, get_user_store
from app.features.teams.errors import TeamPermissionError
from app.utils import get_logger


log = get_logger(__name__)


async def run(user_id: str | None) -> int:
    await init_db()
    service = get_team_service(get_team_registry(), get_user_store(), get_audit_sink())

    if user_id:
        try:
            result = await service.recalculate_user_permissions(user_id, actor="script")
        except TeamPermissionError as e:
            log.error("Recalculation failed for %s: %s (%s)", user_id, e.message, e.code)
            return 1
        print(
            f"user_id={result.user_id} teams={result.team_count} "
            f"permissions={len(result.effective_permissions)} "
            f"added={len(result.added)} removed={len(result.removed)}"
        )
        return 0

    summary = await service.recalculate_all_staff_permissions(actor="script")
    print(f"processed={summary.processed} total={summary.total} errors={len(summary.errors)}")
    for error in summary.errors:
        print(f"error user_id={error.user_id} code={error.code} {error.error}", file=sys.stderr)
    return 0 if not summary.errors else 1


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--user", dest="user_id", help="Recalculate a single user")
    args = parser.parse_args()
    return asyncio.run(run(args.user_id))


if __name__ == "__main__":
    sys.exit(main())
