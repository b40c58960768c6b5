"""Tests for the plan and domain API endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest

from limt.auth import create_access_token


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy", "database": "connected"}


def test_readyz(client):
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ready"


def test_unknown_route_is_json(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["code"] == "NOT_FOUND"


def test_list_plans_is_public(client):
    response = client.get("/api/v1/plans")

    assert response.status_code == 200
    plans = response.get_json()["plans"]
    assert [plan["id"] for plan in plans] == ["free", "pro", "business"]
    assert plans[0]["limits"]["domains"] == 0
    assert plans[2]["limits"]["links"] == -1


class TestPlanGuardEndpoint:

    def test_requires_token(self, client, app_seeded):
        response = client.get(f"/api/v1/plans/organizations/{app_seeded.acme}/guard")
        assert response.status_code == 401
        assert response.get_json() == {
            "success": False,
            "error": "You must be signed in to perform this action",
            "code": "UNAUTHORIZED",
        }

    def test_invalid_token(self, client, app_seeded):
        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    def test_expired_token(self, app, client, app_seeded):
        token = create_access_token(
            app_seeded.owner,
            secret_key=app.config["JWT_SECRET_KEY"],
            expires_in=timedelta(seconds=-5),
        )
        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_token_signed_with_other_key(self, client, app_seeded):
        token = create_access_token(
            app_seeded.owner,
            secret_key="somebody-elses-secret-0123456789abcdef",
            expires_in=timedelta(minutes=5),
        )
        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_inactive_user(self, app, client, app_seeded, auth_headers):
        db = app.config["db"]
        db(db.users.id == app_seeded.owner).update(is_active=False)
        db.commit()

        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers=auth_headers(app_seeded.owner),
        )
        assert response.status_code == 401

    def test_member_gets_guard(self, client, app_seeded, auth_headers):
        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers=auth_headers(app_seeded.member),
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["plan_id"] == "free"
        assert body["data"]["usage"]["members"] == 3

    def test_outsider_forbidden(self, client, app_seeded, auth_headers):
        response = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers=auth_headers(app_seeded.outsider),
        )
        assert response.status_code == 403
        assert response.get_json()["code"] == "FORBIDDEN"


def test_usage_endpoint(client, app_seeded, auth_headers):
    response = client.get(
        f"/api/v1/plans/organizations/{app_seeded.globex}/usage",
        headers=auth_headers(app_seeded.owner),
    )
    assert response.status_code == 200
    assert response.get_json()["data"]["members"] == 1


def test_check_endpoint(client, app_seeded, auth_headers):
    response = client.post(
        f"/api/v1/plans/organizations/{app_seeded.acme}/check",
        json={"resource": "tags", "count": 5},
        headers=auth_headers(app_seeded.member),
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["can_create"] is True
    assert data["remaining"] == 5


def test_check_endpoint_cannot_override_organization(client, app_seeded, auth_headers):
    response = client.post(
        f"/api/v1/plans/organizations/{app_seeded.acme}/check",
        json={"resource": "tags", "organization_id": app_seeded.globex},
        headers=auth_headers(app_seeded.member),
    )
    assert response.status_code == 200


def test_check_endpoint_validation(client, app_seeded, auth_headers):
    response = client.post(
        f"/api/v1/plans/organizations/{app_seeded.acme}/check",
        json={"resource": "widgets"},
        headers=auth_headers(app_seeded.member),
    )
    assert response.status_code == 422
    assert response.get_json()["code"] == "VALIDATION_ERROR"


class TestChangePlanEndpoint:

    def test_owner_upgrades(self, client, app_seeded, auth_headers):
        response = client.put(
            f"/api/v1/plans/organizations/{app_seeded.acme}",
            json={"plan_id": "business"},
            headers=auth_headers(app_seeded.owner),
        )
        assert response.status_code == 200

        guard = client.get(
            f"/api/v1/plans/organizations/{app_seeded.acme}/guard",
            headers=auth_headers(app_seeded.owner),
        ).get_json()["data"]
        assert guard["plan_id"] == "business"

    def test_admin_forbidden(self, client, app_seeded, auth_headers):
        response = client.put(
            f"/api/v1/plans/organizations/{app_seeded.acme}",
            json={"plan_id": "business"},
            headers=auth_headers(app_seeded.admin),
        )
        assert response.status_code == 403


class TestDomainEndpoints:

    @pytest.fixture
    def fake_dns(self, app, resolver):
        app.extensions["limt.domains"].resolver = resolver
        return resolver

    @pytest.fixture
    def pro_acme(self, app, app_seeded):
        db = app.config["db"]
        db(db.organizations.id == app_seeded.acme).update(plan="pro")
        db.commit()
        return app_seeded.acme

    def _create(self, client, headers, organization_id, name="go.acme.com"):
        return client.post(
            "/api/v1/domains",
            json={"organization_id": organization_id, "name": name},
            headers=headers,
        )

    def test_free_plan_blocked(self, client, app_seeded, auth_headers):
        response = self._create(client, auth_headers(app_seeded.owner), app_seeded.acme)
        assert response.status_code == 403
        assert response.get_json()["code"] == "PLAN_LIMIT_REACHED"

    def test_create_list_verify_delete(self, client, app_seeded, pro_acme, auth_headers, fake_dns):
        headers = auth_headers(app_seeded.owner)

        created = self._create(client, headers, pro_acme)
        assert created.status_code == 201
        domain = created.get_json()["data"]

        listed = client.get(f"/api/v1/domains?organization_id={pro_acme}", headers=headers)
        assert [d["name"] for d in listed.get_json()["data"]] == ["go.acme.com"]

        fake_dns.add_txt("_limt-challenge.go.acme.com", domain["verification_token"])
        verified = client.post(f"/api/v1/domains/{domain['id']}/verify", headers=headers)
        assert verified.status_code == 200
        assert verified.get_json()["data"]["verified"] is True

        fetched = client.get(f"/api/v1/domains/{domain['id']}", headers=headers)
        assert fetched.get_json()["data"]["verified"] is True

        deleted = client.delete(f"/api/v1/domains/{domain['id']}", headers=headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/v1/domains/{domain['id']}", headers=headers).status_code == 404

    def test_verify_is_rate_limited(self, client, app_seeded, pro_acme, auth_headers, fake_dns):
        headers = auth_headers(app_seeded.owner)
        domain = self._create(client, headers, pro_acme).get_json()["data"]

        # TestingConfig allows 3 attempts per window
        for _ in range(3):
            response = client.post(f"/api/v1/domains/{domain['id']}/verify", headers=headers)
            assert response.get_json()["data"]["verified"] is False

        response = client.post(f"/api/v1/domains/{domain['id']}/verify", headers=headers)
        assert response.status_code == 429
        assert response.get_json()["code"] == "RATE_LIMIT"

    def test_duplicate_domain(self, client, app_seeded, pro_acme, auth_headers):
        headers = auth_headers(app_seeded.owner)
        self._create(client, headers, pro_acme)
        response = self._create(client, headers, app_seeded.globex)
        assert response.status_code == 409

    def test_list_requires_organization(self, client, app_seeded, auth_headers):
        response = client.get("/api/v1/domains", headers=auth_headers(app_seeded.owner))
        assert response.status_code == 422

    def test_delete_with_links(self, app, client, app_seeded, pro_acme, auth_headers):
        headers = auth_headers(app_seeded.owner)
        domain = self._create(client, headers, pro_acme).get_json()["data"]
        db = app.config["db"]
        db.links.insert(
            organization_id=pro_acme,
            domain_id=domain["id"],
            short_code="promo",
            original_url="https://example.com",
        )
        db.commit()

        response = client.delete(f"/api/v1/domains/{domain['id']}", headers=headers)

        assert response.status_code == 409
        assert response.get_json()["code"] == "DOMAIN_HAS_LINKS"
