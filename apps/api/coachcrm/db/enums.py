"""Enum definitions for roles, plans, and metered resources."""

from enum import Enum


class Role(str, Enum):
    """
    Team roles, one per user.

    - OWNER: Business owner, holds every permission
    - ADMIN: Trusted partner with near-full access (no subscription changes)
    - MANAGER: Team oversight and coordination
    - COACH: Individual practitioner, scoped to assigned clients
    - SUPPORT: Administrative helper (scheduling, invoicing)
    """

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    COACH = "coach"
    SUPPORT = "support"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles with organization-wide client visibility
ROLES_SEE_ALL_CLIENTS = {Role.OWNER, Role.ADMIN, Role.MANAGER}


class AssignmentType(str, Enum):
    """Coach-to-client assignment kind."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUPERVISOR = "supervisor"


class SubscriptionPlan(str, Enum):
    STANDARD = "standard"
    PRO = "pro"
    PREMIUM = "premium"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"


# Statuses that may consume metered resources
USABLE_SUBSCRIPTION_STATUSES = {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIAL.value}


class ResourceType(str, Enum):
    """Metered resources with per-plan monthly limits."""

    CLIENTS = "clients"
    EMAILS = "emails"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    VIDEO_MINUTES = "video_minutes"
    AI_SUMMARIES = "ai_summaries"
    AI_INSIGHTS = "ai_insights"
    TRANSCRIPTION_MINUTES = "transcription_minutes"
    TEAM_MEMBERS = "team_members"
    STORAGE = "storage"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_

    @property
    def display_name(self) -> str:
        return RESOURCE_DISPLAY_NAMES[self]


RESOURCE_DISPLAY_NAMES: dict[ResourceType, str] = {
    ResourceType.CLIENTS: "clients",
    ResourceType.EMAILS: "emails",
    ResourceType.SMS: "SMS messages",
    ResourceType.WHATSAPP: "WhatsApp messages",
    ResourceType.VIDEO_MINUTES: "video minutes",
    ResourceType.AI_SUMMARIES: "AI summaries",
    ResourceType.AI_INSIGHTS: "AI insights",
    ResourceType.TRANSCRIPTION_MINUTES: "transcription minutes",
    ResourceType.TEAM_MEMBERS: "team members",
    ResourceType.STORAGE: "storage (GB)",
}


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class CostAction(str, Enum):
    """Action implied by the actual/estimated cost ratio for a period."""

    NONE = "none"
    NOTIFY = "notify"
    THROTTLE = "throttle"
    SUSPEND = "suspend"
