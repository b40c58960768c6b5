"""
Plan guard: quota and feature decisions for one organization.

A PlanGuard is built per request from a plan id and a usage snapshot,
serialized to cross into the client, rebuilt there and thrown away after
rendering. It is never persisted.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .enums import PlanFeature, PlanId, PlanResource
from .errors import (
    InvalidArgumentError,
    InvalidStateError,
    UnknownFeatureError,
    UnknownPlanError,
    UnknownResourceError,
)
from .plans import UNLIMITED, PlanDefinition, get_plan_definition, get_upgrade_plan
from .schemas.plans import PlanGuardState, UsageSnapshot

# Returned by get_remaining() for unlimited resources
UNLIMITED_REMAINING = math.inf


def _resource(resource: Union[PlanResource, str]) -> PlanResource:
    try:
        return PlanResource(resource)
    except ValueError:
        raise UnknownResourceError(resource) from None


def _feature(feature: Union[PlanFeature, str]) -> PlanFeature:
    try:
        return PlanFeature(feature)
    except ValueError:
        raise UnknownFeatureError(feature) from None


class PlanGuard:
    """Immutable answer-object for plan limits and features.

    Every method is a pure function of the plan and the usage snapshot.

    Usage:
        guard = PlanGuard("free", {"links": 25})
        guard.can_create("links")        # False
        guard.get_usage_percentage("links")  # 100.0
    """

    __slots__ = ("_plan", "_usage")

    def __init__(
        self,
        plan_id: Union[PlanId, str],
        usage: Union[UsageSnapshot, Mapping[str, int], None] = None,
    ):
        plan = get_plan_definition(plan_id)
        if usage is None:
            usage = UsageSnapshot()
        elif not isinstance(usage, UsageSnapshot):
            try:
                usage = UsageSnapshot.model_validate(dict(usage))
            except PydanticValidationError as e:
                raise InvalidArgumentError(f"Invalid usage snapshot: {e.error_count()} error(s)") from e
        object.__setattr__(self, "_plan", plan)
        object.__setattr__(self, "_usage", usage)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("PlanGuard is immutable")

    def __repr__(self) -> str:
        return f"PlanGuard(plan_id={self._plan.id.value!r}, usage={self._usage!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlanGuard):
            return NotImplemented
        return self._plan.id == other._plan.id and self._usage == other._usage

    def __hash__(self) -> int:
        return hash((self._plan.id, self._usage))

    # Numeric limits

    def get_limit(self, resource: Union[PlanResource, str]) -> int:
        """Configured limit for a resource, ``-1`` when unlimited."""
        return self._plan.limit_for(_resource(resource))

    def get_usage(self, resource: Union[PlanResource, str]) -> int:
        """Current usage for a resource."""
        return self._usage.get(_resource(resource))

    def is_unlimited(self, resource: Union[PlanResource, str]) -> bool:
        return self.get_limit(resource) == UNLIMITED

    def get_remaining(self, resource: Union[PlanResource, str]) -> Union[int, float]:
        """Remaining quota, never negative.

        Returns ``UNLIMITED_REMAINING`` (infinity) for unlimited resources;
        check ``is_unlimited`` before formatting.
        """
        if self.is_unlimited(resource):
            return UNLIMITED_REMAINING
        return max(0, self.get_limit(resource) - self.get_usage(resource))

    def can_create(self, resource: Union[PlanResource, str], count: int = 1) -> bool:
        """Whether ``count`` more of ``resource`` fit within the plan.

        A count of 0 asks whether usage is still within the limit.

        Raises:
            InvalidArgumentError: If count is negative or not an integer.
        """
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidArgumentError(f"count must be an integer, got {count!r}")
        if count < 0:
            raise InvalidArgumentError(f"count must not be negative, got {count}")

        if self.is_unlimited(resource):
            return True
        return self.get_usage(resource) + count <= self.get_limit(resource)

    def get_usage_percentage(self, resource: Union[PlanResource, str]) -> float:
        """Usage as a percentage of the limit, clamped to [0, 100].

        Unlimited resources report 0. A zero limit reports 100 as soon as
        anything is used.
        """
        if self.is_unlimited(resource):
            return 0.0
        limit = self.get_limit(resource)
        usage = self.get_usage(resource)
        if limit == 0:
            return 100.0 if usage > 0 else 0.0
        # Multiply first so usage == limit is exactly 100
        return min(100.0, usage * 100 / limit)

    # Boolean features

    def has_feature(self, feature: Union[PlanFeature, str]) -> bool:
        return _feature(feature) in self._plan.features

    def list_features(self) -> frozenset[PlanFeature]:
        return self._plan.features

    # Plan info

    @property
    def plan(self) -> PlanDefinition:
        return self._plan

    @property
    def usage(self) -> UsageSnapshot:
        return self._usage

    def get_plan_id(self) -> PlanId:
        return self._plan.id

    def get_plan_name(self) -> str:
        return self._plan.name

    def get_price(self) -> int:
        return self._plan.price

    def get_yearly_price(self) -> int:
        return self._plan.yearly_price

    def get_analytics_retention_days(self) -> int:
        return self._plan.analytics_retention_days

    def get_upgrade_plan(self) -> Optional[PlanDefinition]:
        """Next tier up, or None on the top tier."""
        return get_upgrade_plan(self._plan.id)

    def is_paid(self) -> bool:
        return self._plan.id != PlanId.FREE

    # Serialization

    def to_state(self) -> PlanGuardState:
        return PlanGuardState(plan_id=self._plan.id, usage=self._usage)

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-safe record: plan id and usage only."""
        return self.to_state().model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Union[PlanGuardState, Mapping[str, Any]]) -> "PlanGuard":
        """Rebuild a guard from ``to_dict`` output.

        Raises:
            InvalidStateError: If the record is malformed or names a plan
                that is not in the catalog.
        """
        if isinstance(data, PlanGuardState):
            state = data
        else:
            try:
                state = PlanGuardState.model_validate(data)
            except PydanticValidationError as e:
                raise InvalidStateError(f"Invalid plan guard state: {e.error_count()} error(s)") from e
        try:
            return cls(state.plan_id, state.usage)
        except UnknownPlanError as e:
            raise InvalidStateError(e.message) from e


def default_plan_guard() -> PlanGuard:
    """Free plan with zero usage, for callers that could not load a guard."""
    return PlanGuard(PlanId.FREE, UsageSnapshot())
