"""
Plan catalog.

Static description of each plan tier: numeric limits per resource, price,
feature set and tier order. ``PLAN_ORDER`` is the single source of truth for
"what is the next plan up".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .enums import PlanFeature, PlanId, PlanResource
from .errors import UnknownPlanError

# Limit value meaning "no cap"
UNLIMITED = -1

PLAN_ORDER: tuple[PlanId, ...] = (PlanId.FREE, PlanId.PRO, PlanId.BUSINESS)


@dataclass(slots=True, frozen=True)
class PlanDefinition:
    """Immutable description of one plan tier.

    Attributes:
        id: Plan identifier.
        name: Display name.
        description: Marketing blurb.
        price: Monthly price in USD.
        yearly_price: Yearly price in USD (discounted).
        limits: Read-only mapping of resource to limit, ``UNLIMITED`` for no cap.
        features: Enabled features.
        analytics_retention_days: How long click analytics are kept.
        recommended: Whether pricing pages badge this plan.
    """

    id: PlanId
    name: str
    description: str
    price: int
    yearly_price: int
    limits: Mapping[PlanResource, int]
    features: frozenset[PlanFeature]
    analytics_retention_days: int
    recommended: bool = False

    def limit_for(self, resource: PlanResource) -> int:
        return self.limits[resource]

    def to_dict(self) -> dict[str, Any]:
        """Public representation for pricing pages."""
        return {
            "id": self.id.value,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "yearly_price": self.yearly_price,
            "recommended": self.recommended,
            "limits": {resource.value: limit for resource, limit in self.limits.items()},
            "features": sorted(feature.value for feature in self.features),
            "analytics_retention_days": self.analytics_retention_days,
        }


def _plan(
    plan_id: PlanId,
    name: str,
    description: str,
    price: int,
    yearly_price: int,
    limits: dict[PlanResource, int],
    features: tuple[PlanFeature, ...],
    analytics_retention_days: int,
    recommended: bool = False,
) -> PlanDefinition:
    return PlanDefinition(
        id=plan_id,
        name=name,
        description=description,
        price=price,
        yearly_price=yearly_price,
        limits=MappingProxyType(dict(limits)),
        features=frozenset(features),
        analytics_retention_days=analytics_retention_days,
        recommended=recommended,
    )


_PRO_FEATURES = (
    PlanFeature.UTM,
    PlanFeature.OG_OVERRIDES,
    PlanFeature.PASSWORD_PROTECTION,
    PlanFeature.LINK_EXPIRATION,
    PlanFeature.SMART_ROUTING,
    PlanFeature.API_ACCESS,
)

PLANS: Mapping[PlanId, PlanDefinition] = MappingProxyType({
    PlanId.FREE: _plan(
        PlanId.FREE,
        name="Free",
        description="For individuals getting started with link management",
        price=0,
        yearly_price=0,
        limits={
            PlanResource.LINKS: 25,
            PlanResource.TAGS: 5,
            PlanResource.DOMAINS: 0,
            PlanResource.API_KEYS: 0,
            PlanResource.MEMBERS: 1,
            PlanResource.CLICKS_PER_MONTH: 1_000,
        },
        features=(),
        analytics_retention_days=30,
    ),
    PlanId.PRO: _plan(
        PlanId.PRO,
        name="Pro",
        description="For professionals who need advanced features",
        price=30,
        yearly_price=288,  # 20% off 12 months
        limits={
            PlanResource.LINKS: 1_000,
            PlanResource.TAGS: 25,
            PlanResource.DOMAINS: 5,
            PlanResource.API_KEYS: 3,
            PlanResource.MEMBERS: 3,
            PlanResource.CLICKS_PER_MONTH: 50_000,
        },
        features=_PRO_FEATURES,
        analytics_retention_days=365,
        recommended=True,
    ),
    PlanId.BUSINESS: _plan(
        PlanId.BUSINESS,
        name="Business",
        description="For teams that need unlimited scale and advanced collaboration",
        price=90,
        yearly_price=864,  # 20% off 12 months
        limits={
            PlanResource.LINKS: UNLIMITED,
            PlanResource.TAGS: UNLIMITED,
            PlanResource.DOMAINS: 25,
            PlanResource.API_KEYS: 10,
            PlanResource.MEMBERS: 10,
            PlanResource.CLICKS_PER_MONTH: 250_000,
        },
        features=_PRO_FEATURES + (
            PlanFeature.AB_TESTING,
            PlanFeature.ROLE_BASED_ACCESS,
            PlanFeature.PRIORITY_SUPPORT,
        ),
        analytics_retention_days=1_095,  # 3 years
    ),
})


@dataclass(slots=True, frozen=True)
class FeatureMetadata:
    name: str
    description: str
    category: str  # links, analytics, domains, api or team


FEATURE_METADATA: Mapping[PlanFeature, FeatureMetadata] = MappingProxyType({
    PlanFeature.UTM: FeatureMetadata(
        "UTM Builder", "Track campaign performance with UTM parameters", "links"),
    PlanFeature.OG_OVERRIDES: FeatureMetadata(
        "Custom Link Previews", "Customize Open Graph metadata for social sharing", "links"),
    PlanFeature.PASSWORD_PROTECTION: FeatureMetadata(
        "Password Protection", "Protect links with passwords", "links"),
    PlanFeature.LINK_EXPIRATION: FeatureMetadata(
        "Link Expiration", "Set expiration dates for links", "links"),
    PlanFeature.SMART_ROUTING: FeatureMetadata(
        "Smart Routing", "Route users based on geo-location and device", "links"),
    PlanFeature.AB_TESTING: FeatureMetadata(
        "A/B Testing", "Split traffic between multiple destinations", "links"),
    PlanFeature.API_ACCESS: FeatureMetadata(
        "API Access", "Programmatic access via REST API", "api"),
    PlanFeature.ROLE_BASED_ACCESS: FeatureMetadata(
        "Role-based Access", "Granular permissions for team members", "team"),
    PlanFeature.PRIORITY_SUPPORT: FeatureMetadata(
        "Priority Support", "Get help faster with priority support", "team"),
})

RESOURCE_METADATA: Mapping[PlanResource, dict[str, str]] = MappingProxyType({
    PlanResource.LINKS: {"name": "Links", "unit": "links/month"},
    PlanResource.TAGS: {"name": "Tags", "unit": "tags"},
    PlanResource.DOMAINS: {"name": "Custom Domains", "unit": "domains"},
    PlanResource.API_KEYS: {"name": "API Keys", "unit": "keys"},
    PlanResource.MEMBERS: {"name": "Team Members", "unit": "members"},
    PlanResource.CLICKS_PER_MONTH: {"name": "Tracked Clicks", "unit": "clicks/month"},
})


def is_valid_plan_id(value: Any) -> bool:
    """Check whether a value names a plan in the catalog."""
    try:
        return PlanId(value) in PLANS
    except ValueError:
        return False


def get_plan_definition(plan_id: PlanId | str) -> PlanDefinition:
    """Get plan definition by ID.

    Raises:
        UnknownPlanError: If the ID is not in the catalog.
    """
    try:
        return PLANS[PlanId(plan_id)]
    except (ValueError, KeyError):
        raise UnknownPlanError(plan_id) from None


def list_plans_in_order() -> list[PlanDefinition]:
    """All plans from lowest to highest tier."""
    return [PLANS[plan_id] for plan_id in PLAN_ORDER]


def get_upgrade_plan(plan_id: PlanId | str) -> Optional[PlanDefinition]:
    """Next plan strictly above ``plan_id``, or None at the ceiling."""
    current = get_plan_definition(plan_id)
    position = PLAN_ORDER.index(current.id)
    if position + 1 >= len(PLAN_ORDER):
        return None
    return PLANS[PLAN_ORDER[position + 1]]


def _rank(limit: int) -> float:
    return float("inf") if limit == UNLIMITED else limit


def validate_catalog(
    plans: Mapping[PlanId, PlanDefinition],
    order: tuple[PlanId, ...] = PLAN_ORDER,
) -> None:
    """Check catalog invariants.

    Every plan defines every resource, limits never decrease going up the
    tier order, and the free tier has no custom domains.

    Raises:
        ValueError: On the first violated invariant.
    """
    if set(order) != set(plans):
        raise ValueError("Plan order and catalog must list the same plans")

    for plan_id in order:
        plan = plans[plan_id]
        missing = set(PlanResource) - set(plan.limits)
        if missing:
            names = ", ".join(sorted(r.value for r in missing))
            raise ValueError(f"Plan {plan_id.value} is missing limits for: {names}")
        for resource, limit in plan.limits.items():
            if limit < 0 and limit != UNLIMITED:
                raise ValueError(
                    f"Plan {plan_id.value} has invalid {resource.value} limit {limit}"
                )

    for lower_id, higher_id in zip(order, order[1:]):
        lower, higher = plans[lower_id], plans[higher_id]
        for resource in PlanResource:
            if _rank(higher.limits[resource]) < _rank(lower.limits[resource]):
                raise ValueError(
                    f"Plan {higher_id.value} allows fewer {resource.value} "
                    f"than {lower_id.value}"
                )

    free = plans.get(PlanId.FREE)
    if free is not None and free.limits[PlanResource.DOMAINS] != 0:
        raise ValueError("Free plan must not include custom domains")


validate_catalog(PLANS)
