"""Tests for the active organization store and PlanGuardClient."""

from __future__ import annotations

import pytest

from limt.active_organization import (
    ActiveOrganization,
    ActiveOrganizationStore,
    PlanGuardClient,
)
from limt.enums import PlanId
from limt.errors import ForbiddenError, InvalidStateError
from limt.plan_guard import PlanGuard
from limt.schemas.common import ActionFailure, ActionSuccess

ACME = ActiveOrganization(id=1, name="Acme", slug="acme")
GLOBEX = ActiveOrganization(id=2, name="Globex", slug="globex")


class TestActiveOrganizationStore:

    def test_set_notifies_subscribers(self):
        store = ActiveOrganizationStore()
        seen = []
        store.subscribe(seen.append)

        store.set(ACME)
        store.set(None)

        assert seen == [ACME, None]
        assert store.get() is None

    def test_unsubscribe(self):
        store = ActiveOrganizationStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        store.set(ACME)

        assert seen == []
        assert store.listener_count == 0

    def test_failing_listener_does_not_block_others(self):
        store = ActiveOrganizationStore()
        seen = []

        def broken(organization):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.set(GLOBEX)

        assert seen == [GLOBEX]

    def test_closed_store_rejects_changes(self):
        store = ActiveOrganizationStore(ACME)
        store.subscribe(lambda organization: None)
        store.close()

        assert store.listener_count == 0
        assert store.get() == ACME
        with pytest.raises(InvalidStateError):
            store.set(GLOBEX)
        with pytest.raises(InvalidStateError):
            store.subscribe(lambda organization: None)


class FakeLoader:
    """Plan guard state action returning canned results per organization."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    def __call__(self, data):
        self.calls.append(data["organization_id"])
        return self.results[data["organization_id"]]


@pytest.fixture
def loader():
    return FakeLoader({
        ACME.id: ActionSuccess(data=PlanGuard("pro", {"links": 990}).to_dict()),
        GLOBEX.id: ForbiddenError("You are not a member of this organization").to_failure(),
    })


def test_client_without_active_organization(loader):
    client = PlanGuardClient(ActiveOrganizationStore(), loader)

    assert client.guard is None
    assert client.error is None
    assert loader.calls == []
    assert client.can_create("links") is False
    assert client.get_limit("links") == 0
    assert client.get_usage("links") == 0
    assert client.get_remaining("links") == 0
    assert client.is_unlimited("links") is False
    assert client.get_usage_percentage("links") == 0.0
    assert client.has_feature("utm") is False
    assert client.list_features() == frozenset()
    assert client.get_plan_id() == PlanId.FREE
    assert client.get_plan_name() == "Free"
    assert client.get_price() == 0
    assert client.get_yearly_price() == 0
    assert client.get_analytics_retention_days() == 30
    assert client.get_upgrade_plan() is None
    assert client.is_paid() is False


def test_client_loads_guard_for_initial_organization(loader):
    client = PlanGuardClient(ActiveOrganizationStore(ACME), loader)

    assert loader.calls == [ACME.id]
    assert client.loading is False
    assert client.get_plan_id() == PlanId.PRO
    assert client.get_remaining("links") == 10
    assert client.can_create("links", 11) is False
    assert client.has_feature("utm") is True
    assert client.get_upgrade_plan().id == PlanId.BUSINESS


def test_client_follows_store(loader):
    store = ActiveOrganizationStore()
    client = PlanGuardClient(store, loader)

    store.set(ACME)
    assert client.is_paid() is True

    store.set(None)
    assert client.guard is None


def test_client_falls_back_to_free_on_failure(loader):
    store = ActiveOrganizationStore()
    client = PlanGuardClient(store, loader)

    store.set(GLOBEX)

    assert client.error == "You are not a member of this organization"
    assert client.guard is not None
    assert client.get_plan_id() == PlanId.FREE
    assert client.can_create("domains") is False


def test_client_falls_back_on_malformed_state():
    loader = FakeLoader({ACME.id: ActionSuccess(data={"plan_id": "platinum", "usage": {}})})
    client = PlanGuardClient(ActiveOrganizationStore(ACME), loader)

    assert client.get_plan_id() == PlanId.FREE
    assert client.error is not None


def test_error_clears_after_successful_reload(loader):
    store = ActiveOrganizationStore(GLOBEX)
    client = PlanGuardClient(store, loader)
    assert client.error is not None

    store.set(ACME)

    assert client.error is None
    assert client.get_plan_id() == PlanId.PRO


def test_refresh_reloads(loader):
    store = ActiveOrganizationStore(ACME)
    client = PlanGuardClient(store, loader)

    loader.results[ACME.id] = ActionSuccess(data=PlanGuard("business").to_dict())
    client.refresh()

    assert loader.calls == [ACME.id, ACME.id]
    assert client.get_plan_id() == PlanId.BUSINESS


def test_stale_result_is_discarded():
    store = ActiveOrganizationStore()

    def loader(data):
        if data["organization_id"] == ACME.id:
            # The user switches organization while acme is still loading
            store.set(GLOBEX)
            return ActionSuccess(data=PlanGuard("pro").to_dict())
        return ActionSuccess(data=PlanGuard("business").to_dict())

    client = PlanGuardClient(store, loader)
    store.set(ACME)

    assert client.get_plan_id() == PlanId.BUSINESS


def test_close_unsubscribes(loader):
    store = ActiveOrganizationStore()
    client = PlanGuardClient(store, loader)

    client.close()
    store.set(ACME)

    assert client.guard is None
    assert loader.calls == []


def test_unexpected_failure_without_code():
    loader = FakeLoader({ACME.id: ActionFailure(error="An unexpected error occurred")})
    client = PlanGuardClient(ActiveOrganizationStore(ACME), loader)

    assert client.error == "An unexpected error occurred"
    assert client.get_plan_id() == PlanId.FREE
