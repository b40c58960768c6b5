"""Usage snapshot providers.

The plan guard never counts anything itself; it consumes a UsageSnapshot
from a provider. Monthly resources (links, clicks) are counted from the
start of the current UTC calendar month; everything else is a lifetime
total.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable

from pydal import DAL

from .schemas.plans import UsageSnapshot

logger = logging.getLogger(__name__)


def month_start(now: datetime) -> datetime:
    """Midnight on the first day of ``now``'s calendar month."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class UsageProvider(ABC):
    """Source of current resource counts for an organization."""

    @abstractmethod
    def get_usage(self, organization_id: int) -> UsageSnapshot:
        """Return the organization's usage snapshot."""
        ...


class StaticUsageProvider(UsageProvider):
    """Fixed snapshots keyed by organization. Unknown organizations use zero."""

    def __init__(self, snapshots: dict[int, UsageSnapshot] | None = None):
        self._snapshots = dict(snapshots or {})

    def set_usage(self, organization_id: int, snapshot: UsageSnapshot) -> None:
        self._snapshots[organization_id] = snapshot

    def get_usage(self, organization_id: int) -> UsageSnapshot:
        return self._snapshots.get(organization_id, UsageSnapshot())


class PyDALUsageProvider(UsageProvider):
    """Counts usage from the PyDAL tables."""

    def __init__(self, db: DAL, clock: Callable[[], datetime] = datetime.utcnow):
        """Initialize provider.

        Args:
            db: Open DAL with the application tables defined.
            clock: Returns the current naive UTC time; injectable for tests.
        """
        self._db = db
        self._clock = clock

    def get_usage(self, organization_id: int) -> UsageSnapshot:
        db = self._db
        period_start = month_start(self._clock())

        links_this_month = db(
            (db.links.organization_id == organization_id) &
            (db.links.created_at >= period_start)
        ).count()

        clicks_this_month = db(
            (db.link_clicks.link_id == db.links.id) &
            (db.links.organization_id == organization_id) &
            (db.link_clicks.clicked_at >= period_start)
        ).count()

        snapshot = UsageSnapshot(
            links=links_this_month,
            tags=db(db.tags.organization_id == organization_id).count(),
            domains=db(db.domains.organization_id == organization_id).count(),
            api_keys=db(db.api_keys.organization_id == organization_id).count(),
            members=db(db.members.organization_id == organization_id).count(),
            clicks_per_month=clicks_this_month,
        )
        logger.debug(f"Usage for organization {organization_id}: {snapshot}")
        return snapshot
