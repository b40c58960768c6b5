"""Plan and usage schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from ..enums import PlanId, PlanResource


class UsageSnapshot(BaseModel):
    """An organization's resource consumption at one point in time.

    Produced by a UsageProvider; the plan guard only reads it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    links: int = Field(0, ge=0, description="Links created this calendar month")
    tags: int = Field(0, ge=0)
    domains: int = Field(0, ge=0)
    api_keys: int = Field(0, ge=0)
    members: int = Field(0, ge=0)
    clicks_per_month: int = Field(0, ge=0, description="Clicks this calendar month")

    def get(self, resource: PlanResource) -> int:
        return getattr(self, resource.value)


class PlanGuardState(BaseModel):
    """Serialized plan guard: plan id and usage only.

    Limits, prices and features are looked up again from the catalog when
    the guard is rebuilt, so a serialized guard never carries stale plan data.
    """

    model_config = ConfigDict(extra="forbid")

    plan_id: PlanId
    usage: UsageSnapshot


class OrganizationRequest(BaseModel):
    """Any action scoped to a single organization."""

    organization_id: StrictInt = Field(..., gt=0)


class CheckPlanLimitRequest(OrganizationRequest):
    resource: PlanResource
    count: StrictInt = Field(1, ge=0, description="How many would be created")


class ChangePlanRequest(OrganizationRequest):
    plan_id: PlanId


class PlanLimitStatus(BaseModel):
    """Answer to "can this organization create N more of a resource"."""

    resource: PlanResource
    can_create: bool
    limit: int
    usage: int
    remaining: int | None = Field(None, description="None when unlimited")
    unlimited: bool

    @field_validator("remaining")
    @classmethod
    def _non_negative(cls, value: Any) -> Any:
        if value is not None and value < 0:
            raise ValueError("remaining must not be negative")
        return value
