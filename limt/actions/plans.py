"""
Plan actions.

Entry points that authenticate the caller, authorize them against an
organization and answer plan questions. Every public action returns an
ActionResult; nothing raises past the action boundary.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from prometheus_client import Counter
from pydal import DAL

from ..auth_guards import SessionAccessor, require_auth, require_org_membership, require_org_role
from ..enums import MemberRole, PlanId, PlanResource
from ..errors import NotFoundError, PlanLimitError, safe_action
from ..models import get_organization
from ..plan_guard import PlanGuard
from ..plans import is_valid_plan_id
from ..schemas.plans import (
    ChangePlanRequest,
    CheckPlanLimitRequest,
    OrganizationRequest,
    PlanLimitStatus,
)
from ..usage import UsageProvider

logger = logging.getLogger(__name__)

PLAN_LIMIT_DENIALS = Counter(
    "limt_plan_limit_denials_total",
    "Actions refused because the organization reached a plan limit",
    ["resource"],
)

SUBSCRIPTION_PERIOD = timedelta(days=30)


def enforce_plan_limit(
    guard: PlanGuard,
    resource: PlanResource,
    noun: str,
    count: int = 1,
) -> None:
    """Raise PlanLimitError unless ``count`` more of ``resource`` fit.

    Args:
        guard: Guard for the organization.
        resource: Resource being created.
        noun: Plural noun for the message, e.g. "domains".
        count: How many are being created.

    Raises:
        PlanLimitError: With a hint naming the next plan, if there is one.
    """
    if guard.can_create(resource, count):
        return

    PLAN_LIMIT_DENIALS.labels(resource=PlanResource(resource).value).inc()
    upgrade = guard.get_upgrade_plan()
    if upgrade:
        message = (
            f"You've reached your {noun} limit. "
            f"Upgrade to {upgrade.name} to add more {noun}."
        )
    else:
        message = f"You've reached your {noun} limit."
    raise PlanLimitError(message)


class PlanService:
    """Plan guard loading and plan management actions.

    Collaborators are injected so the same service runs under Flask (with
    the request-bound session accessor) and in plain tests.
    """

    def __init__(
        self,
        db: DAL,
        usage_provider: UsageProvider,
        session_accessor: SessionAccessor,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.usage_provider = usage_provider
        self.session_accessor = session_accessor
        self._clock = clock

    def _resolve_plan_id(self, organization_id: int) -> PlanId:
        organization = get_organization(self.db, organization_id)
        if not organization:
            raise NotFoundError("Organization")

        if not is_valid_plan_id(organization.plan):
            logger.error(
                f"Invalid plan ID in database for organization {organization_id}: "
                f"{organization.plan!r}; treating as free"
            )
            return PlanId.FREE
        return PlanId(organization.plan)

    def create_plan_guard(self, organization_id: int) -> PlanGuard:
        """Build a guard for an organization.

        Performs no authorization; callers must have checked membership.

        Raises:
            NotFoundError: If the organization does not exist.
        """
        plan_id = self._resolve_plan_id(organization_id)
        usage = self.usage_provider.get_usage(organization_id)
        return PlanGuard(plan_id, usage)

    @safe_action("Failed to get plan guard state")
    def get_plan_guard_state(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Serialized PlanGuard for an organization the caller belongs to."""
        session = require_auth(self.session_accessor)
        request = OrganizationRequest.model_validate(data)
        require_org_membership(self.db, request.organization_id, session.user_id)

        guard = self.create_plan_guard(request.organization_id)
        return guard.to_dict()

    @safe_action("Failed to get organization usage")
    def get_organization_usage(self, data: Mapping[str, Any]) -> dict[str, int]:
        session = require_auth(self.session_accessor)
        request = OrganizationRequest.model_validate(data)
        require_org_membership(self.db, request.organization_id, session.user_id)

        return self.usage_provider.get_usage(request.organization_id).model_dump()

    @safe_action("Failed to check plan limit")
    def check_plan_limit(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Whether the organization can create ``count`` more of a resource."""
        session = require_auth(self.session_accessor)
        request = CheckPlanLimitRequest.model_validate(data)
        require_org_membership(self.db, request.organization_id, session.user_id)

        guard = self.create_plan_guard(request.organization_id)
        unlimited = guard.is_unlimited(request.resource)
        status = PlanLimitStatus(
            resource=request.resource,
            can_create=guard.can_create(request.resource, request.count),
            limit=guard.get_limit(request.resource),
            usage=guard.get_usage(request.resource),
            remaining=None if unlimited else guard.get_remaining(request.resource),
            unlimited=unlimited,
        )
        return status.model_dump(mode="json")

    @safe_action("Failed to change plan")
    def change_plan(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Switch an organization's plan. Owners only.

        Billing webhooks are expected to call this in production.
        """
        session = require_auth(self.session_accessor)
        request = ChangePlanRequest.model_validate(data)
        require_org_role(self.db, request.organization_id, session.user_id, [MemberRole.OWNER])

        db = self.db
        if not get_organization(db, request.organization_id):
            raise NotFoundError("Organization")

        now = self._clock()
        period = {
            "plan": request.plan_id.value,
            "status": "active",
            "current_period_start": now,
            "current_period_end": now + SUBSCRIPTION_PERIOD,
            "cancel_at_period_end": False,
        }

        try:
            existing = db(db.subscriptions.organization_id == request.organization_id).select().first()
            if existing:
                db(db.subscriptions.id == existing.id).update(**period)
            else:
                db.subscriptions.insert(organization_id=request.organization_id, **period)
            db(db.organizations.id == request.organization_id).update(plan=request.plan_id.value)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Organization {request.organization_id} moved to plan "
            f"{request.plan_id.value} by user {session.user_id}"
        )
        return {"organization_id": request.organization_id, "plan_id": request.plan_id.value}
