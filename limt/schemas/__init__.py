"""Pydantic schema models for action and API validation."""

from .common import (
    ActionFailure,
    ActionSuccess,
    ErrorResponse,
)
from .domains import (
    CreateDomainRequest,
    DnsInstructions,
    DnsRecord,
    DnsVerificationResult,
)
from .plans import (
    ChangePlanRequest,
    CheckPlanLimitRequest,
    OrganizationRequest,
    PlanGuardState,
    PlanLimitStatus,
    UsageSnapshot,
)

__all__ = [
    # Common schemas
    "ActionFailure",
    "ActionSuccess",
    "ErrorResponse",
    # Plan schemas
    "ChangePlanRequest",
    "CheckPlanLimitRequest",
    "OrganizationRequest",
    "PlanGuardState",
    "PlanLimitStatus",
    "UsageSnapshot",
    # Domain schemas
    "CreateDomainRequest",
    "DnsInstructions",
    "DnsRecord",
    "DnsVerificationResult",
]
