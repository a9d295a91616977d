"""Permission registry, role defaults, and role presentation metadata.

Every capability is a ``PermissionKey``. Each role maps to a fixed set of keys;
the owner set is built from the whole catalog so it is complete by construction.
The biller modifier adds ``BILLER_PERMISSIONS`` on top of any base role.

Resolution: role_default | (biller_set if is_biller)
Unknown role or permission: deny
"""

from dataclasses import dataclass
from enum import Enum

from coachcrm.db.enums import Role


class PermissionKey(str, Enum):
    """Closed catalog of capability identifiers."""

    # Account & Billing
    CHANGE_SUBSCRIPTION = "change_subscription"
    UPDATE_PAYMENT_METHOD = "update_payment_method"
    VIEW_BILLING = "view_billing"
    DELETE_ACCOUNT = "delete_account"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    ACCESS_USAGE_DASHBOARD = "access_usage_dashboard"
    PURCHASE_ADDONS = "purchase_addons"

    # Team Management
    ADD_TEAM_MEMBERS = "add_team_members"
    REMOVE_TEAM_MEMBERS = "remove_team_members"
    CHANGE_PERMISSIONS = "change_permissions"
    ASSIGN_CLIENTS = "assign_clients"
    VIEW_TEAM_PERFORMANCE = "view_team_performance"
    EDIT_TEAM_CALENDARS = "edit_team_calendars"

    # Client Management
    VIEW_ALL_CLIENTS = "view_all_clients"
    VIEW_OWN_CLIENTS = "view_own_clients"
    EDIT_ALL_CLIENTS = "edit_all_clients"
    EDIT_OWN_CLIENTS = "edit_own_clients"
    DELETE_CLIENTS = "delete_clients"
    CREATE_CLIENTS = "create_clients"
    EXPORT_CLIENT_DATA = "export_client_data"
    TRANSFER_CLIENTS = "transfer_clients"

    # Sessions & Notes
    CREATE_SESSION_NOTES = "create_session_notes"
    VIEW_ALL_SESSIONS = "view_all_sessions"
    VIEW_OWN_SESSIONS = "view_own_sessions"
    EDIT_ALL_SESSIONS = "edit_all_sessions"
    EDIT_OWN_SESSIONS = "edit_own_sessions"
    DELETE_SESSION_NOTES = "delete_session_notes"
    USE_AI_FEATURES = "use_ai_features"

    # Scheduling
    MANAGE_OWN_CALENDAR = "manage_own_calendar"
    VIEW_TEAM_CALENDARS = "view_team_calendars"
    BOOK_FOR_SELF = "book_for_self"
    BOOK_FOR_OTHERS = "book_for_others"
    CONFIGURE_APPOINTMENT_TYPES = "configure_appointment_types"

    # Client Billing & Payments
    VIEW_CLIENT_INVOICES = "view_client_invoices"
    CREATE_INVOICES = "create_invoices"
    EDIT_INVOICES = "edit_invoices"
    DELETE_INVOICES = "delete_invoices"
    PROCESS_PAYMENTS = "process_payments"
    REFUND_PAYMENTS = "refund_payments"
    VIEW_FINANCIAL_REPORTS = "view_financial_reports"

    # Communications
    MESSAGE_OWN_CLIENTS = "message_own_clients"
    MESSAGE_ALL_CLIENTS = "message_all_clients"
    SEND_WHATSAPP = "send_whatsapp"
    SEND_BULK_MESSAGES = "send_bulk_messages"
    CONFIGURE_EMAIL_TEMPLATES = "configure_email_templates"

    # Programs & Resources
    VIEW_RESOURCES = "view_resources"
    CREATE_RESOURCES = "create_resources"
    EDIT_ALL_RESOURCES = "edit_all_resources"
    EDIT_OWN_RESOURCES = "edit_own_resources"
    DELETE_RESOURCES = "delete_resources"
    PUBLISH_PROGRAMS = "publish_programs"

    # Analytics & Reports
    VIEW_ANALYTICS_DASHBOARD = "view_analytics_dashboard"
    VIEW_TEAM_ANALYTICS = "view_team_analytics"
    VIEW_CLIENT_PROGRESS = "view_client_progress"
    EXPORT_REPORTS = "export_reports"
    VIEW_CHURN_PREDICTIONS = "view_churn_predictions"

    # System Settings
    MANAGE_ACCOUNT_SETTINGS = "manage_account_settings"
    MANAGE_INTEGRATIONS = "manage_integrations"
    CONFIGURE_AUTOMATIONS = "configure_automations"
    CUSTOMIZE_BRANDING = "customize_branding"
    API_ACCESS = "api_access"
    VIEW_AUDIT_LOGS = "view_audit_logs"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


P = PermissionKey


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: PermissionKey
    label: str
    description: str
    category: str


class PermissionCategory(str, Enum):
    """Permission categories for UI grouping."""
    ACCOUNT = "Account & Billing"
    TEAM = "Team Management"
    CLIENTS = "Client Management"
    SESSIONS = "Sessions & Notes"
    SCHEDULING = "Scheduling"
    CLIENT_BILLING = "Client Billing"
    COMMUNICATIONS = "Communications"
    PROGRAMS = "Programs & Resources"
    ANALYTICS = "Analytics & Reports"
    SETTINGS = "System Settings"


# =============================================================================
# Permission Registry
# =============================================================================

_CATALOG: list[tuple[PermissionKey, str, str, PermissionCategory]] = [
    # Account & Billing
    (P.CHANGE_SUBSCRIPTION, "Change Subscription", "Upgrade, downgrade or cancel the plan", PermissionCategory.ACCOUNT),
    (P.UPDATE_PAYMENT_METHOD, "Update Payment Method", "Change the card or mandate on file", PermissionCategory.ACCOUNT),
    (P.VIEW_BILLING, "View Billing", "See subscription invoices and billing history", PermissionCategory.ACCOUNT),
    (P.DELETE_ACCOUNT, "Delete Account", "Permanently close the business account", PermissionCategory.ACCOUNT),
    (P.TRANSFER_OWNERSHIP, "Transfer Ownership", "Hand the owner role to another member", PermissionCategory.ACCOUNT),
    (P.ACCESS_USAGE_DASHBOARD, "Access Usage Dashboard", "See plan usage and limits", PermissionCategory.ACCOUNT),
    (P.PURCHASE_ADDONS, "Purchase Add-ons", "Buy extra clients, messages or minutes", PermissionCategory.ACCOUNT),
    # Team Management
    (P.ADD_TEAM_MEMBERS, "Add Team Members", "Invite new members", PermissionCategory.TEAM),
    (P.REMOVE_TEAM_MEMBERS, "Remove Team Members", "Remove members from the team", PermissionCategory.TEAM),
    (P.CHANGE_PERMISSIONS, "Change Permissions", "Change member roles and modifiers", PermissionCategory.TEAM),
    (P.ASSIGN_CLIENTS, "Assign Clients", "Assign clients to coaches", PermissionCategory.TEAM),
    (P.VIEW_TEAM_PERFORMANCE, "View Team Performance", "See per-coach performance", PermissionCategory.TEAM),
    (P.EDIT_TEAM_CALENDARS, "Edit Team Calendars", "Change other members' availability", PermissionCategory.TEAM),
    # Client Management
    (P.VIEW_ALL_CLIENTS, "View All Clients", "See every client in the business", PermissionCategory.CLIENTS),
    (P.VIEW_OWN_CLIENTS, "View Own Clients", "See assigned clients", PermissionCategory.CLIENTS),
    (P.EDIT_ALL_CLIENTS, "Edit All Clients", "Modify any client record", PermissionCategory.CLIENTS),
    (P.EDIT_OWN_CLIENTS, "Edit Own Clients", "Modify assigned client records", PermissionCategory.CLIENTS),
    (P.DELETE_CLIENTS, "Delete Clients", "Remove client records", PermissionCategory.CLIENTS),
    (P.CREATE_CLIENTS, "Create Clients", "Add new clients", PermissionCategory.CLIENTS),
    (P.EXPORT_CLIENT_DATA, "Export Client Data", "Download client data", PermissionCategory.CLIENTS),
    (P.TRANSFER_CLIENTS, "Transfer Clients", "Move clients between coaches", PermissionCategory.CLIENTS),
    # Sessions & Notes
    (P.CREATE_SESSION_NOTES, "Create Session Notes", "Write notes for sessions", PermissionCategory.SESSIONS),
    (P.VIEW_ALL_SESSIONS, "View All Sessions", "See every session in the business", PermissionCategory.SESSIONS),
    (P.VIEW_OWN_SESSIONS, "View Own Sessions", "See sessions with assigned clients", PermissionCategory.SESSIONS),
    (P.EDIT_ALL_SESSIONS, "Edit All Sessions", "Modify any session", PermissionCategory.SESSIONS),
    (P.EDIT_OWN_SESSIONS, "Edit Own Sessions", "Modify own sessions", PermissionCategory.SESSIONS),
    (P.DELETE_SESSION_NOTES, "Delete Session Notes", "Remove session notes", PermissionCategory.SESSIONS),
    (P.USE_AI_FEATURES, "Use AI Features", "Generate AI summaries and insights", PermissionCategory.SESSIONS),
    # Scheduling
    (P.MANAGE_OWN_CALENDAR, "Manage Own Calendar", "Set own availability", PermissionCategory.SCHEDULING),
    (P.VIEW_TEAM_CALENDARS, "View Team Calendars", "See everyone's availability", PermissionCategory.SCHEDULING),
    (P.BOOK_FOR_SELF, "Book For Self", "Book appointments on own calendar", PermissionCategory.SCHEDULING),
    (P.BOOK_FOR_OTHERS, "Book For Others", "Book appointments for other members", PermissionCategory.SCHEDULING),
    (P.CONFIGURE_APPOINTMENT_TYPES, "Configure Appointment Types", "Edit appointment types", PermissionCategory.SCHEDULING),
    # Client Billing & Payments
    (P.VIEW_CLIENT_INVOICES, "View Client Invoices", "See invoices sent to clients", PermissionCategory.CLIENT_BILLING),
    (P.CREATE_INVOICES, "Create Invoices", "Issue client invoices", PermissionCategory.CLIENT_BILLING),
    (P.EDIT_INVOICES, "Edit Invoices", "Modify client invoices", PermissionCategory.CLIENT_BILLING),
    (P.DELETE_INVOICES, "Delete Invoices", "Void client invoices", PermissionCategory.CLIENT_BILLING),
    (P.PROCESS_PAYMENTS, "Process Payments", "Record and collect client payments", PermissionCategory.CLIENT_BILLING),
    (P.REFUND_PAYMENTS, "Refund Payments", "Issue refunds to clients", PermissionCategory.CLIENT_BILLING),
    (P.VIEW_FINANCIAL_REPORTS, "View Financial Reports", "Access revenue reports", PermissionCategory.CLIENT_BILLING),
    # Communications
    (P.MESSAGE_OWN_CLIENTS, "Message Own Clients", "Message assigned clients", PermissionCategory.COMMUNICATIONS),
    (P.MESSAGE_ALL_CLIENTS, "Message All Clients", "Message any client", PermissionCategory.COMMUNICATIONS),
    (P.SEND_WHATSAPP, "Send WhatsApp", "Send WhatsApp messages", PermissionCategory.COMMUNICATIONS),
    (P.SEND_BULK_MESSAGES, "Send Bulk Messages", "Send campaigns to many clients", PermissionCategory.COMMUNICATIONS),
    (P.CONFIGURE_EMAIL_TEMPLATES, "Configure Email Templates", "Edit email templates", PermissionCategory.COMMUNICATIONS),
    # Programs & Resources
    (P.VIEW_RESOURCES, "View Resources", "Browse the resource library", PermissionCategory.PROGRAMS),
    (P.CREATE_RESOURCES, "Create Resources", "Upload worksheets and material", PermissionCategory.PROGRAMS),
    (P.EDIT_ALL_RESOURCES, "Edit All Resources", "Modify any resource", PermissionCategory.PROGRAMS),
    (P.EDIT_OWN_RESOURCES, "Edit Own Resources", "Modify own resources", PermissionCategory.PROGRAMS),
    (P.DELETE_RESOURCES, "Delete Resources", "Remove resources", PermissionCategory.PROGRAMS),
    (P.PUBLISH_PROGRAMS, "Publish Programs", "Make programs available to clients", PermissionCategory.PROGRAMS),
    # Analytics & Reports
    (P.VIEW_ANALYTICS_DASHBOARD, "View Analytics Dashboard", "Access the analytics dashboard", PermissionCategory.ANALYTICS),
    (P.VIEW_TEAM_ANALYTICS, "View Team Analytics", "See analytics across the team", PermissionCategory.ANALYTICS),
    (P.VIEW_CLIENT_PROGRESS, "View Client Progress", "Track client goals and progress", PermissionCategory.ANALYTICS),
    (P.EXPORT_REPORTS, "Export Reports", "Download reports", PermissionCategory.ANALYTICS),
    (P.VIEW_CHURN_PREDICTIONS, "View Churn Predictions", "See AI churn risk scores", PermissionCategory.ANALYTICS),
    # System Settings
    (P.MANAGE_ACCOUNT_SETTINGS, "Manage Account Settings", "Edit business profile and settings", PermissionCategory.SETTINGS),
    (P.MANAGE_INTEGRATIONS, "Manage Integrations", "Connect calendars, payments, WhatsApp", PermissionCategory.SETTINGS),
    (P.CONFIGURE_AUTOMATIONS, "Configure Automations", "Create and edit workflows", PermissionCategory.SETTINGS),
    (P.CUSTOMIZE_BRANDING, "Customize Branding", "Logo, colors and custom domain", PermissionCategory.SETTINGS),
    (P.API_ACCESS, "API Access", "Create and use API keys", PermissionCategory.SETTINGS),
    (P.VIEW_AUDIT_LOGS, "View Audit Logs", "Access the audit trail", PermissionCategory.SETTINGS),
]

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    key.value: PermissionDef(key, label, description, category.value)
    for key, label, description, category in _CATALOG
}


# =============================================================================
# Default Role Permissions
# =============================================================================

ROLE_DEFAULTS: dict[Role, frozenset[PermissionKey]] = {
    Role.OWNER: frozenset(PermissionKey),  # All permissions
    Role.ADMIN: frozenset({
        # Account & Billing (view only, no changes)
        P.VIEW_BILLING,
        P.ACCESS_USAGE_DASHBOARD,
        # Team Management
        P.ADD_TEAM_MEMBERS,
        P.REMOVE_TEAM_MEMBERS,
        P.CHANGE_PERMISSIONS,
        P.ASSIGN_CLIENTS,
        P.VIEW_TEAM_PERFORMANCE,
        P.EDIT_TEAM_CALENDARS,
        # Client Management
        P.VIEW_ALL_CLIENTS,
        P.VIEW_OWN_CLIENTS,
        P.EDIT_ALL_CLIENTS,
        P.EDIT_OWN_CLIENTS,
        P.DELETE_CLIENTS,
        P.CREATE_CLIENTS,
        P.EXPORT_CLIENT_DATA,
        P.TRANSFER_CLIENTS,
        # Sessions & Notes
        P.CREATE_SESSION_NOTES,
        P.VIEW_ALL_SESSIONS,
        P.VIEW_OWN_SESSIONS,
        P.EDIT_ALL_SESSIONS,
        P.EDIT_OWN_SESSIONS,
        P.DELETE_SESSION_NOTES,
        P.USE_AI_FEATURES,
        # Scheduling
        P.MANAGE_OWN_CALENDAR,
        P.VIEW_TEAM_CALENDARS,
        P.BOOK_FOR_SELF,
        P.BOOK_FOR_OTHERS,
        P.CONFIGURE_APPOINTMENT_TYPES,
        # Client Billing
        P.VIEW_CLIENT_INVOICES,
        P.CREATE_INVOICES,
        P.EDIT_INVOICES,
        P.DELETE_INVOICES,
        P.PROCESS_PAYMENTS,
        P.REFUND_PAYMENTS,
        P.VIEW_FINANCIAL_REPORTS,
        # Communications
        P.MESSAGE_OWN_CLIENTS,
        P.MESSAGE_ALL_CLIENTS,
        P.SEND_WHATSAPP,
        P.SEND_BULK_MESSAGES,
        P.CONFIGURE_EMAIL_TEMPLATES,
        # Programs & Resources
        P.VIEW_RESOURCES,
        P.CREATE_RESOURCES,
        P.EDIT_ALL_RESOURCES,
        P.EDIT_OWN_RESOURCES,
        P.DELETE_RESOURCES,
        P.PUBLISH_PROGRAMS,
        # Analytics
        P.VIEW_ANALYTICS_DASHBOARD,
        P.VIEW_TEAM_ANALYTICS,
        P.VIEW_CLIENT_PROGRESS,
        P.EXPORT_REPORTS,
        P.VIEW_CHURN_PREDICTIONS,
        # System Settings
        P.MANAGE_ACCOUNT_SETTINGS,
        P.MANAGE_INTEGRATIONS,
        P.CONFIGURE_AUTOMATIONS,
        P.CUSTOMIZE_BRANDING,
        P.API_ACCESS,
        P.VIEW_AUDIT_LOGS,
    }),
    Role.MANAGER: frozenset({
        P.ACCESS_USAGE_DASHBOARD,
        # Team Management (limited)
        P.ASSIGN_CLIENTS,
        P.VIEW_TEAM_PERFORMANCE,
        P.EDIT_TEAM_CALENDARS,
        # Client Management (view all, edit own)
        P.VIEW_ALL_CLIENTS,
        P.VIEW_OWN_CLIENTS,
        P.EDIT_OWN_CLIENTS,
        P.CREATE_CLIENTS,
        P.EXPORT_CLIENT_DATA,
        P.TRANSFER_CLIENTS,
        # Sessions & Notes
        P.CREATE_SESSION_NOTES,
        P.VIEW_ALL_SESSIONS,
        P.VIEW_OWN_SESSIONS,
        P.EDIT_OWN_SESSIONS,
        P.USE_AI_FEATURES,
        # Scheduling
        P.MANAGE_OWN_CALENDAR,
        P.VIEW_TEAM_CALENDARS,
        P.BOOK_FOR_SELF,
        P.BOOK_FOR_OTHERS,
        P.CONFIGURE_APPOINTMENT_TYPES,
        # Client Billing
        P.VIEW_CLIENT_INVOICES,
        P.CREATE_INVOICES,
        P.EDIT_INVOICES,
        P.PROCESS_PAYMENTS,
        P.REFUND_PAYMENTS,
        P.VIEW_FINANCIAL_REPORTS,
        # Communications
        P.MESSAGE_OWN_CLIENTS,
        P.MESSAGE_ALL_CLIENTS,
        P.SEND_WHATSAPP,
        P.SEND_BULK_MESSAGES,
        P.CONFIGURE_EMAIL_TEMPLATES,
        # Programs & Resources
        P.VIEW_RESOURCES,
        P.CREATE_RESOURCES,
        P.EDIT_OWN_RESOURCES,
        P.PUBLISH_PROGRAMS,
        # Analytics
        P.VIEW_ANALYTICS_DASHBOARD,
        P.VIEW_TEAM_ANALYTICS,
        P.VIEW_CLIENT_PROGRESS,
        P.EXPORT_REPORTS,
        P.VIEW_CHURN_PREDICTIONS,
        # System Settings (limited)
        P.CONFIGURE_AUTOMATIONS,
    }),
    Role.COACH: frozenset({
        # Client Management (own clients only)
        P.VIEW_OWN_CLIENTS,
        P.EDIT_OWN_CLIENTS,
        P.CREATE_CLIENTS,
        P.EXPORT_CLIENT_DATA,
        # Sessions & Notes
        P.CREATE_SESSION_NOTES,
        P.VIEW_OWN_SESSIONS,
        P.EDIT_OWN_SESSIONS,
        P.USE_AI_FEATURES,
        # Scheduling
        P.MANAGE_OWN_CALENDAR,
        P.BOOK_FOR_SELF,
        # Client Billing (own clients only)
        P.VIEW_CLIENT_INVOICES,
        P.CREATE_INVOICES,
        P.EDIT_INVOICES,
        P.PROCESS_PAYMENTS,
        # Communications
        P.MESSAGE_OWN_CLIENTS,
        P.SEND_WHATSAPP,
        # Programs & Resources
        P.VIEW_RESOURCES,
        P.CREATE_RESOURCES,
        P.EDIT_OWN_RESOURCES,
        # Analytics (own clients only)
        P.VIEW_ANALYTICS_DASHBOARD,
        P.VIEW_CLIENT_PROGRESS,
        P.EXPORT_REPORTS,
        P.VIEW_CHURN_PREDICTIONS,
    }),
    Role.SUPPORT: frozenset({
        # Scheduling (can book for others)
        P.VIEW_TEAM_CALENDARS,
        P.BOOK_FOR_OTHERS,
        # Client Billing
        P.VIEW_CLIENT_INVOICES,
        P.CREATE_INVOICES,
        P.EDIT_INVOICES,
        P.PROCESS_PAYMENTS,
        P.REFUND_PAYMENTS,
        P.VIEW_FINANCIAL_REPORTS,
        # Communications (coordination only)
        P.MESSAGE_OWN_CLIENTS,
        P.SEND_WHATSAPP,
        # Programs & Resources (view only)
        P.VIEW_RESOURCES,
    }),
}

# Granted on top of the base role when a user carries the biller modifier
BILLER_PERMISSIONS: frozenset[PermissionKey] = frozenset({
    P.VIEW_CLIENT_INVOICES,
    P.CREATE_INVOICES,
    P.EDIT_INVOICES,
    P.PROCESS_PAYMENTS,
    P.REFUND_PAYMENTS,
    P.VIEW_FINANCIAL_REPORTS,
})


# =============================================================================
# Role Presentation
# =============================================================================

ROLE_LABELS: dict[Role, str] = {
    Role.OWNER: "Owner",
    Role.ADMIN: "Admin",
    Role.MANAGER: "Manager",
    Role.COACH: "Coach",
    Role.SUPPORT: "Support",
}

ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.OWNER: "Full control of your coaching business",
    Role.ADMIN: "Trusted partner with near-full access",
    Role.MANAGER: "Team oversight and coordination",
    Role.COACH: "Individual practitioner access",
    Role.SUPPORT: "Administrative helper role",
}

ROLE_COLORS: dict[Role, str] = {
    Role.OWNER: "purple",
    Role.ADMIN: "blue",
    Role.MANAGER: "green",
    Role.COACH: "orange",
    Role.SUPPORT: "pink",
}


# =============================================================================
# Helper Functions
# =============================================================================

def get_all_permissions() -> list[PermissionDef]:
    """Get all permissions sorted by category."""
    return sorted(PERMISSION_REGISTRY.values(), key=lambda p: (p.category, p.key.value))


def is_valid_permission(key: str) -> bool:
    """Check if permission key exists."""
    return key in PERMISSION_REGISTRY


def get_role_default_permissions(role: Role | str) -> frozenset[PermissionKey]:
    """Get default permissions for a role (empty for unknown roles)."""
    if isinstance(role, str) and not isinstance(role, Role):
        if not Role.has_value(role):
            return frozenset()
        role = Role(role)
    return ROLE_DEFAULTS.get(role, frozenset())


def get_permissions_by_category() -> dict[str, list[PermissionDef]]:
    """Group permissions by category for UI."""
    result: dict[str, list[PermissionDef]] = {}
    for perm in PERMISSION_REGISTRY.values():
        if perm.category not in result:
            result[perm.category] = []
        result[perm.category].append(perm)
    return result
