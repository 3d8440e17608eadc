from enum import Enum


class UserRoleEnum(str, Enum):
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class PlatformEnum(str, Enum):
    META = "META"
    GOOGLE = "GOOGLE"
    BOTH = "BOTH"


class CampaignStatusEnum(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ApprovalStatusEnum(str, Enum):
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_CHANGES = "NEEDS_CHANGES"


class LeadStatusEnum(str, Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    CONVERTED = "CONVERTED"
    LOST = "LOST"
    INTERESTED = "INTERESTED"
    NURTURING = "NURTURING"
    UNSUBSCRIBED = "UNSUBSCRIBED"


class AdPlatformEnum(str, Enum):
    """A single vendor platform, as opposed to the campaign-level selector."""

    META = "META"
    GOOGLE = "GOOGLE"
