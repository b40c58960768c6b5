"""Session and organization membership guards for actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from pydal import DAL
from pydal.objects import Row

from .errors import ForbiddenError, UnauthorizedError
from .models import get_membership


@dataclass(slots=True, frozen=True)
class Session:
    """Authenticated caller. Sessions are issued elsewhere."""

    user_id: int
    email: Optional[str] = None


SessionAccessor = Callable[[], Optional[Session]]


def require_auth(session_accessor: SessionAccessor) -> Session:
    """Require an authenticated session.

    Raises:
        UnauthorizedError: If no session exists.
    """
    session = session_accessor()
    if session is None:
        raise UnauthorizedError()
    return session


def require_org_membership(db: DAL, organization_id: int, user_id: int) -> Row:
    """Require the user to be a member of the organization.

    Raises:
        ForbiddenError: If the user is not a member.
    """
    member = get_membership(db, organization_id, user_id)
    if not member:
        raise ForbiddenError("You are not a member of this organization")
    return member


def require_org_role(
    db: DAL,
    organization_id: int,
    user_id: int,
    allowed_roles: Iterable[str],
) -> Row:
    """Require membership with one of ``allowed_roles``.

    Raises:
        ForbiddenError: If the user is not a member or lacks the role.
    """
    allowed_roles = [str(getattr(role, "value", role)) for role in allowed_roles]
    member = require_org_membership(db, organization_id, user_id)
    if member.role not in allowed_roles:
        raise ForbiddenError(f"Only {' or '.join(allowed_roles)} can perform this action")
    return member
