"""
Active organization store and the plan guard client that follows it.

The store is an explicit object handed to whoever needs it; listeners are
notified synchronously whenever the active organization changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Mapping, Optional, Union

from .enums import PlanFeature, PlanId, PlanResource
from .errors import ActionResult, AppError, InvalidStateError
from .plan_guard import PlanGuard, default_plan_guard
from .plans import PlanDefinition

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ActiveOrganization:
    """Organization currently selected by the user."""

    id: int
    name: str = ""
    slug: str = ""


Listener = Callable[[Optional[ActiveOrganization]], None]
GuardLoader = Callable[[Mapping[str, Any]], ActionResult]


class ActiveOrganizationStore:
    """Holds the active organization and notifies subscribers on change."""

    def __init__(self, initial: Optional[ActiveOrganization] = None):
        self._current = initial
        self._listeners: list[Listener] = []
        self._lock = Lock()
        self._closed = False

    def get(self) -> Optional[ActiveOrganization]:
        return self._current

    def set(self, organization: Optional[ActiveOrganization]) -> None:
        """Replace the active organization and notify every listener.

        Raises:
            InvalidStateError: If the store has been closed.
        """
        with self._lock:
            if self._closed:
                raise InvalidStateError("Active organization store is closed")
            self._current = organization
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(organization)
            except Exception:
                logger.exception("Active organization listener failed")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``. Returns a function that unsubscribes it."""
        with self._lock:
            if self._closed:
                raise InvalidStateError("Active organization store is closed")
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def close(self) -> None:
        """Drop every listener and refuse further changes."""
        with self._lock:
            self._closed = True
            self._listeners.clear()


class PlanGuardClient:
    """Keeps a PlanGuard in step with the active organization.

    ``loader`` is the plan guard state action (or anything with the same
    shape). When it fails, the error is kept in ``error`` and the client
    falls back to the free plan so the UI never offers more than the
    cheapest tier allows. With no active organization there is no guard
    and the accessors return their empty defaults.

    Usage:
        client = PlanGuardClient(store, plan_service.get_plan_guard_state)
        store.set(ActiveOrganization(id=42))
        client.can_create("links")
    """

    def __init__(self, store: ActiveOrganizationStore, loader: GuardLoader):
        self._store = store
        self._loader = loader
        self._generation = 0
        self.guard: Optional[PlanGuard] = None
        self.error: Optional[str] = None
        self.loading = False
        self._unsubscribe = store.subscribe(self._on_change)
        self._on_change(store.get())

    def _on_change(self, organization: Optional[ActiveOrganization]) -> None:
        self._generation += 1
        generation = self._generation

        if organization is None:
            self.guard = None
            self.error = None
            self.loading = False
            return

        self.loading = True
        self.error = None
        guard, error = self._load(organization)

        # A newer change arrived while loading; its result wins
        if generation != self._generation:
            return

        self.guard = guard
        self.error = error
        self.loading = False

    def _load(self, organization: ActiveOrganization) -> tuple[PlanGuard, Optional[str]]:
        result = self._loader({"organization_id": organization.id})
        if not result.success:
            logger.warning(
                f"Could not load plan guard for organization {organization.id}: "
                f"{result.error}; using free plan"
            )
            return default_plan_guard(), result.error

        try:
            return PlanGuard.from_dict(result.data), None
        except AppError as e:
            logger.warning(f"Discarding malformed plan guard state: {e.message}")
            return default_plan_guard(), e.message

    def refresh(self) -> None:
        """Reload the guard for the current organization."""
        self._on_change(self._store.get())

    def close(self) -> None:
        self._unsubscribe()

    # Null-safe accessors

    def can_create(self, resource: Union[PlanResource, str], count: int = 1) -> bool:
        return self.guard.can_create(resource, count) if self.guard else False

    def get_limit(self, resource: Union[PlanResource, str]) -> int:
        return self.guard.get_limit(resource) if self.guard else 0

    def get_usage(self, resource: Union[PlanResource, str]) -> int:
        return self.guard.get_usage(resource) if self.guard else 0

    def get_remaining(self, resource: Union[PlanResource, str]) -> Union[int, float]:
        return self.guard.get_remaining(resource) if self.guard else 0

    def is_unlimited(self, resource: Union[PlanResource, str]) -> bool:
        return self.guard.is_unlimited(resource) if self.guard else False

    def get_usage_percentage(self, resource: Union[PlanResource, str]) -> float:
        return self.guard.get_usage_percentage(resource) if self.guard else 0.0

    def has_feature(self, feature: Union[PlanFeature, str]) -> bool:
        return self.guard.has_feature(feature) if self.guard else False

    def list_features(self) -> frozenset[PlanFeature]:
        return self.guard.list_features() if self.guard else frozenset()

    def get_plan_id(self) -> PlanId:
        return self.guard.get_plan_id() if self.guard else PlanId.FREE

    def get_plan_name(self) -> str:
        return self.guard.get_plan_name() if self.guard else "Free"

    def get_price(self) -> int:
        return self.guard.get_price() if self.guard else 0

    def get_yearly_price(self) -> int:
        return self.guard.get_yearly_price() if self.guard else 0

    def get_analytics_retention_days(self) -> int:
        return self.guard.get_analytics_retention_days() if self.guard else 30

    def get_upgrade_plan(self) -> Optional[PlanDefinition]:
        return self.guard.get_upgrade_plan() if self.guard else None

    def is_paid(self) -> bool:
        return self.guard.is_paid() if self.guard else False
