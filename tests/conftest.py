"""Pytest configuration and fixtures for Limt backend tests."""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Optional

import dns.resolver
import pytest
from pydal import DAL

# Set testing environment
os.environ["FLASK_ENV"] = "testing"
os.environ["DB_TYPE"] = "sqlite"
os.environ["DB_NAME"] = ":memory:"

from limt.auth_guards import Session  # noqa: E402
from limt.models import define_tables  # noqa: E402

NOW = datetime(2026, 3, 15, 12, 0, 0)


class SessionStub:
    """Callable session accessor whose signed-in user tests can switch."""

    def __init__(self):
        self.current: Optional[Session] = None

    def login(self, user_id: int) -> None:
        self.current = Session(user_id=user_id)

    def logout(self) -> None:
        self.current = None

    def __call__(self) -> Optional[Session]:
        return self.current


class FakeTXT:
    """Stand-in for a dnspython TXT rdata."""

    def __init__(self, *strings):
        self.strings = tuple(s.encode() if isinstance(s, str) else s for s in strings)


class FakeResolver:
    """Resolver answering from a table of (name, rdtype) entries.

    An entry is either a list of answers or an exception to raise. Missing
    entries raise NXDOMAIN.
    """

    def __init__(self, records: Optional[dict] = None):
        self.records = dict(records or {})
        self.queries: list[tuple[str, str, Optional[float]]] = []

    def add_txt(self, name: str, *values) -> None:
        self.records[(name, "TXT")] = [FakeTXT(*value) if isinstance(value, tuple) else FakeTXT(value)
                                       for value in values]

    def add_cname(self, name: str, target: str = "cname.limt.app.") -> None:
        self.records[(name, "CNAME")] = [target]

    def fail(self, name: str, rdtype: str, error: Exception) -> None:
        self.records[(name, rdtype)] = error

    def resolve(self, name, rdtype, lifetime=None):
        self.queries.append((name, rdtype, lifetime))
        answer = self.records.get((name, rdtype))
        if answer is None:
            raise dns.resolver.NXDOMAIN()
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def db(tmp_path):
    """In-memory PyDAL database with every table defined."""
    db = DAL("sqlite:memory", folder=str(tmp_path), lazy_tables=False)
    define_tables(db)
    yield db
    db.close()


def seed(db) -> SimpleNamespace:
    """Two organizations and four users.

    acme (free): owner, admin and member
    globex (pro): owner only
    outsider belongs to neither.
    """
    owner = db.users.insert(email="owner@example.com", full_name="Olivia Owner")
    admin = db.users.insert(email="admin@example.com", full_name="Adam Admin")
    member = db.users.insert(email="member@example.com", full_name="Mia Member")
    outsider = db.users.insert(email="outsider@example.com", full_name="Otto Outsider")

    acme = db.organizations.insert(name="Acme", slug="acme", plan="free")
    globex = db.organizations.insert(name="Globex", slug="globex", plan="pro")

    db.members.insert(organization_id=acme, user_id=owner, role="owner")
    db.members.insert(organization_id=acme, user_id=admin, role="admin")
    db.members.insert(organization_id=acme, user_id=member, role="member")
    db.members.insert(organization_id=globex, user_id=owner, role="owner")
    db.commit()

    return SimpleNamespace(
        owner=owner,
        admin=admin,
        member=member,
        outsider=outsider,
        acme=acme,
        globex=globex,
    )


@pytest.fixture
def seeded(db):
    return seed(db)


@pytest.fixture
def sessions():
    return SessionStub()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def app(tmp_path):
    """Create test application."""
    from limt import create_app
    from limt.config import TestingConfig

    config_class = type("IsolatedTestingConfig", (TestingConfig,), {"DB_FOLDER": str(tmp_path)})
    app = create_app(config_class)
    yield app
    app.config["db"].close()


@pytest.fixture
def app_seeded(app):
    return seed(app.config["db"])


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Helper to create auth headers for a user id."""
    from limt.auth import create_access_token

    def _auth_headers(user_id: int) -> dict:
        token = create_access_token(
            user_id,
            secret_key=app.config["JWT_SECRET_KEY"],
            expires_in=timedelta(minutes=5),
        )
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
