"""
Team definition registry.

The registry is static configuration: it is built once from a mapping or a JSON
file and never mutated. Consumers receive it by injection (see
dependencies.get_team_registry) so tests can supply their own definitions.
"""
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from app.features.teams.errors import UnknownTeamError
from app.features.teams.schemas import TeamDefinition
from app.utils import get_logger


log = get_logger(__name__)


class TeamDefinitionRegistry:
    """Read-only lookup from team identifier to TeamDefinition."""

    def __init__(self, definitions: Iterable[TeamDefinition]):
        teams: dict[str, TeamDefinition] = {}
        for definition in definitions:
            if definition.id in teams:
                raise ValueError(f"Duplicate team definition: {definition.id}")
            teams[definition.id] = definition
        self._teams: Mapping[str, TeamDefinition] = teams

    @classmethod
    def from_mapping(cls, raw: Iterable[Mapping[str, Any]]) -> "TeamDefinitionRegistry":
        """
        Build a registry from plain dicts.

        Each dict uses the TeamDefinition field names; permission lists may be
        any iterable of strings.
        """
        return cls(TeamDefinition.model_validate(item) for item in raw)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "TeamDefinitionRegistry":
        """Load definitions from a JSON array (or {"teams": [...]}) on disk."""
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, dict):
            data = data.get("teams", [])
        registry = cls.from_mapping(data)
        log.info("Loaded %d team definitions from %s", len(registry), path)
        return registry

    def lookup(self, team_id: str) -> TeamDefinition:
        """Return the definition for team_id or raise UnknownTeamError."""
        try:
            return self._teams[team_id]
        except KeyError:
            raise UnknownTeamError(team_id) from None

    def get(self, team_id: str) -> Optional[TeamDefinition]:
        return self._teams.get(team_id)

    def team_ids(self) -> list[str]:
        return list(self._teams)

    def definitions(self) -> list[TeamDefinition]:
        return list(self._teams.values())

    def __contains__(self, team_id: object) -> bool:
        return team_id in self._teams

    def __len__(self) -> int:
        return len(self._teams)


# ============================================================================
# Built-in marketplace teams
# ============================================================================

DEFAULT_TEAM_DEFINITIONS: list[dict[str, Any]] = [
    {
        "id": "sales",
        "name": "Sales Team",
        "description": "Handles sales activities, lead management, and customer acquisition",
        "responsibilities": [
            "Manage sales leads and opportunities",
            "Close deals and manage sales pipeline",
            "Coordinate with dealers and premium customers",
        ],
        "default_permissions": [
            "view_leads", "respond_to_leads", "view_customer_info", "view_analytics",
            "view_sales_reports", "create_notes", "manage_own_leads",
        ],
        "manager_permissions": [
            "view_leads", "respond_to_leads", "assign_leads", "view_customer_info",
            "view_all_leads", "view_analytics", "view_sales_reports", "manage_sales_pipeline",
            "create_notes", "manage_own_leads", "manage_team_leads", "view_team_performance",
        ],
    },
    {
        "id": "customer_support",
        "name": "Customer Support Team",
        "description": "Provides customer assistance, handles inquiries, and resolves issues",
        "responsibilities": [
            "Respond to customer inquiries",
            "Manage support tickets",
            "Escalate complex issues to appropriate teams",
        ],
        "default_permissions": [
            "view_support_tickets", "respond_to_tickets", "view_customer_info", "view_user_profiles",
            "view_listings", "create_notes", "manage_own_tickets", "view_knowledge_base",
        ],
        "manager_permissions": [
            "view_support_tickets", "respond_to_tickets", "assign_tickets", "view_customer_info",
            "view_user_profiles", "view_listings", "view_all_tickets", "manage_ticket_queue",
            "create_notes", "manage_own_tickets", "manage_team_tickets", "view_support_metrics",
            "edit_knowledge_base",
        ],
    },
    {
        "id": "content_moderation",
        "name": "Content Moderation Team",
        "description": "Reviews and moderates user-generated content, enforces community standards",
        "responsibilities": [
            "Review flagged listings",
            "Handle abuse reports",
            "Suspend or ban violating accounts",
        ],
        "default_permissions": [
            "view_flagged_content", "review_listings", "approve_listings", "reject_listings",
            "view_reports", "create_moderation_notes", "view_user_profiles", "view_moderation_queue",
        ],
        "manager_permissions": [
            "view_flagged_content", "review_listings", "approve_listings", "reject_listings",
            "delete_listings", "suspend_users", "ban_users", "view_reports",
            "assign_moderation_tasks", "create_moderation_notes", "view_user_profiles",
            "view_moderation_queue", "manage_moderation_queue", "view_moderation_metrics",
            "update_content_policies",
        ],
    },
    {
        "id": "technical_operations",
        "name": "Technical Operations Team",
        "description": "Manages technical infrastructure, deployments, and system health",
        "responsibilities": [
            "Monitor system health and performance",
            "Manage deployments and releases",
            "Handle technical incidents",
        ],
        "default_permissions": [
            "view_system_metrics", "view_logs", "view_error_reports", "view_api_usage",
            "create_technical_notes", "view_infrastructure_status",
        ],
        "manager_permissions": [
            "view_system_metrics", "view_logs", "view_error_reports", "view_api_usage",
            "manage_deployments", "manage_infrastructure", "perform_database_operations",
            "manage_api_keys", "create_technical_notes", "view_infrastructure_status",
            "manage_system_configuration", "access_production_console", "manage_backups",
        ],
    },
    {
        "id": "marketing",
        "name": "Marketing Team",
        "description": "Manages marketing campaigns, content, and customer engagement",
        "responsibilities": [
            "Create and manage marketing campaigns",
            "Analyze marketing metrics",
            "Coordinate with sales team",
        ],
        "default_permissions": [
            "view_marketing_metrics", "view_customer_analytics", "create_campaigns",
            "view_email_campaigns", "view_promotional_content", "create_marketing_notes",
        ],
        "manager_permissions": [
            "view_marketing_metrics", "view_customer_analytics", "create_campaigns",
            "manage_campaigns", "send_email_campaigns", "view_email_campaigns",
            "view_promotional_content", "create_promotional_content", "manage_promotional_content",
            "create_marketing_notes", "manage_marketing_budget", "view_roi_metrics",
            "manage_social_media",
        ],
    },
    {
        "id": "finance",
        "name": "Finance Team",
        "description": "Manages financial operations, billing, and revenue tracking",
        "responsibilities": [
            "Process payments and refunds",
            "Manage subscriptions and billing",
            "Generate financial reports",
        ],
        "default_permissions": [
            "view_transactions", "view_payment_info", "view_subscription_info",
            "view_financial_reports", "create_finance_notes", "view_invoices",
        ],
        "manager_permissions": [
            "view_transactions", "view_payment_info", "view_subscription_info",
            "view_financial_reports", "process_refunds", "manage_subscriptions", "manage_billing",
            "create_invoices", "manage_payment_disputes", "create_finance_notes", "view_invoices",
            "manage_pricing", "view_revenue_metrics", "export_financial_data",
        ],
    },
    {
        "id": "product",
        "name": "Product Team",
        "description": "Manages product development, features, and user experience",
        "responsibilities": [
            "Define product roadmap",
            "Analyze user feedback",
            "Prioritize product backlog",
        ],
        "default_permissions": [
            "view_product_metrics", "view_user_feedback", "view_feature_requests",
            "create_product_notes", "view_usage_analytics", "view_user_behavior",
        ],
        "manager_permissions": [
            "view_product_metrics", "view_user_feedback", "view_feature_requests",
            "manage_feature_requests", "create_product_notes", "view_usage_analytics",
            "view_user_behavior", "manage_product_roadmap", "prioritize_features",
            "manage_product_releases", "conduct_user_research", "view_all_analytics",
        ],
    },
    {
        "id": "executive",
        "name": "Executive Team",
        "description": "Leadership team with full system access and strategic oversight",
        "responsibilities": [
            "Strategic planning and decision making",
            "Cross-functional oversight",
            "Final escalation point",
        ],
        "default_permissions": [
            "view_all_metrics", "view_all_reports", "view_all_analytics", "view_all_teams",
            "view_all_users", "view_financial_overview", "view_strategic_metrics",
            "create_executive_notes",
        ],
        "manager_permissions": [
            "view_all_metrics", "view_all_reports", "view_all_analytics", "view_all_teams",
            "view_all_users", "view_financial_overview", "view_strategic_metrics",
            "manage_company_settings", "manage_all_teams", "manage_staff_roles",
            "access_all_systems", "override_policies", "create_executive_notes",
            "manage_budgets", "strategic_planning",
        ],
    },
]


def build_default_registry() -> TeamDefinitionRegistry:
    return TeamDefinitionRegistry.from_mapping(DEFAULT_TEAM_DEFINITIONS)
