"""
Custom domain actions.

Adding a domain checks the plan's domain quota and issues a DNS challenge
token; verification is a manual, rate-limited action that reads DNS and
records ``verified_at`` on success.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from pydal import DAL

from ..auth_guards import SessionAccessor, require_auth, require_org_membership, require_org_role
from ..enums import MemberRole, PlanResource
from ..errors import ConflictError, DomainInUseError, NotFoundError, safe_action
from ..schemas.domains import CreateDomainRequest
from ..schemas.plans import OrganizationRequest
from ..utils.dns_verification import (
    DEFAULT_CNAME_TARGET,
    DEFAULT_TIMEOUT,
    generate_verification_token,
    get_dns_instructions,
    verify_domain_dns,
)
from ..utils.ratelimit import InMemoryRateLimiter
from .plans import PlanService, enforce_plan_limit

logger = logging.getLogger(__name__)

MANAGER_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)


class DomainService:
    """Custom domain management actions."""

    def __init__(
        self,
        db: DAL,
        plan_service: PlanService,
        session_accessor: SessionAccessor,
        rate_limiter: Optional[InMemoryRateLimiter] = None,
        resolver=None,
        dns_timeout: float = DEFAULT_TIMEOUT,
        cname_target: str = DEFAULT_CNAME_TARGET,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.plan_service = plan_service
        self.session_accessor = session_accessor
        self.rate_limiter = rate_limiter or InMemoryRateLimiter()
        self.resolver = resolver
        self.dns_timeout = dns_timeout
        self.cname_target = cname_target
        self._clock = clock

    def _serialize(self, domain) -> dict[str, Any]:
        result = {
            "id": domain.id,
            "organization_id": domain.organization_id,
            "name": domain.name,
            "verified": domain.verified_at is not None,
            "verified_at": domain.verified_at.isoformat() if domain.verified_at else None,
        }
        if not domain.verified_at and domain.verification_token:
            result["verification_token"] = domain.verification_token
            result["instructions"] = self.instructions_for(domain)
        return result

    def instructions_for(self, domain) -> dict[str, Any]:
        return get_dns_instructions(
            domain.name, domain.verification_token, self.cname_target
        ).model_dump()

    def _get_domain_or_raise(self, domain_id: int):
        domain = self.db(self.db.domains.id == domain_id).select().first()
        if not domain:
            raise NotFoundError("Domain")
        return domain

    @safe_action("Failed to create domain")
    def create_domain(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Attach a custom domain and issue its DNS challenge token."""
        session = require_auth(self.session_accessor)
        request = CreateDomainRequest.model_validate(data)
        require_org_role(self.db, request.organization_id, session.user_id, MANAGER_ROLES)

        guard = self.plan_service.create_plan_guard(request.organization_id)
        enforce_plan_limit(guard, PlanResource.DOMAINS, "domains")

        db = self.db
        if db(db.domains.name == request.name).count():
            raise ConflictError("This domain is already registered")

        token = generate_verification_token()
        try:
            domain_id = db.domains.insert(
                organization_id=request.organization_id,
                name=request.name,
                verification_token=token,
            )
            db.commit()
        except Exception:
            db.rollback()
            # Another request may have claimed the name since the check above
            if db(db.domains.name == request.name).count():
                raise ConflictError("This domain is already registered")
            raise

        logger.info(f"Domain {request.name} added to organization {request.organization_id}")
        return self._serialize(self._get_domain_or_raise(domain_id))

    @safe_action("Failed to list domains")
    def list_domains(self, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        session = require_auth(self.session_accessor)
        request = OrganizationRequest.model_validate(data)
        require_org_membership(self.db, request.organization_id, session.user_id)

        db = self.db
        rows = db(db.domains.organization_id == request.organization_id).select(
            orderby=db.domains.created_at | db.domains.id
        )
        return [self._serialize(row) for row in rows]

    @safe_action("Failed to get domain")
    def get_domain(self, domain_id: int) -> dict[str, Any]:
        session = require_auth(self.session_accessor)
        domain = self._get_domain_or_raise(domain_id)
        require_org_membership(self.db, domain.organization_id, session.user_id)
        return self._serialize(domain)

    @safe_action("Failed to verify domain")
    def verify_domain(self, domain_id: int) -> dict[str, Any]:
        """Run one DNS verification attempt for a domain.

        The verifier result is returned whether or not it succeeded; only a
        successful attempt is persisted.
        """
        session = require_auth(self.session_accessor)
        domain = self._get_domain_or_raise(domain_id)
        require_org_membership(self.db, domain.organization_id, session.user_id)

        if domain.verified_at:
            return {
                "domain": self._serialize(domain),
                "verified": True,
                "message": "Domain already verified",
            }

        self.rate_limiter.check(f"verify-domain:{domain_id}")

        result = verify_domain_dns(
            domain.name,
            domain.verification_token or "",
            resolver=self.resolver,
            timeout=self.dns_timeout,
        )

        db = self.db
        if result.verified:
            try:
                db(db.domains.id == domain_id).update(verified_at=self._clock())
                db.commit()
            except Exception:
                db.rollback()
                raise
            domain = self._get_domain_or_raise(domain_id)
            logger.info(f"Domain {domain.name} verified by user {session.user_id}")
        else:
            logger.info(f"Domain {domain.name} verification failed: {result.error}")

        return {
            "domain": self._serialize(domain),
            **result.model_dump(exclude_none=True),
        }

    @safe_action("Failed to delete domain")
    def delete_domain(self, domain_id: int) -> dict[str, Any]:
        """Remove a domain. Refused while links still use it."""
        session = require_auth(self.session_accessor)
        domain = self._get_domain_or_raise(domain_id)
        require_org_role(self.db, domain.organization_id, session.user_id, MANAGER_ROLES)

        db = self.db
        link_count = db(db.links.domain_id == domain_id).count()
        if link_count > 0:
            raise DomainInUseError(
                f"Cannot delete domain with {link_count} active links. "
                "Please reassign or delete the links first."
            )

        try:
            db(db.domains.id == domain_id).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Domain {domain.name} deleted by user {session.user_id}")
        return {"id": domain_id, "deleted": True}
