"""Server-side actions. Each public action returns an ActionResult."""

from .domains import DomainService
from .plans import PLAN_LIMIT_DENIALS, PlanService, enforce_plan_limit

__all__ = [
    "DomainService",
    "PLAN_LIMIT_DENIALS",
    "PlanService",
    "enforce_plan_limit",
]
