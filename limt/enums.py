"""
Plan enums - strongly typed identifiers for tiers, resources and features.
"""

from enum import Enum


class PlanId(str, Enum):
    """Plan tiers. Upgrade order lives in ``limt.plans.PLAN_ORDER``."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class PlanResource(str, Enum):
    """Countable, organization-scoped quantities governed by plan limits."""

    LINKS = "links"  # New links this calendar month
    TAGS = "tags"
    DOMAINS = "domains"  # Custom domains
    API_KEYS = "api_keys"
    MEMBERS = "members"
    CLICKS_PER_MONTH = "clicks_per_month"  # Tracked clicks this calendar month


class PlanFeature(str, Enum):
    """Boolean capabilities a plan either grants or not."""

    UTM = "utm"
    OG_OVERRIDES = "og_overrides"  # Custom Open Graph link previews
    PASSWORD_PROTECTION = "password_protection"
    LINK_EXPIRATION = "link_expiration"
    SMART_ROUTING = "smart_routing"  # Geo/device targeting
    AB_TESTING = "ab_testing"
    API_ACCESS = "api_access"
    ROLE_BASED_ACCESS = "role_based_access"
    PRIORITY_SUPPORT = "priority_support"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
