"""PyDAL Database Models."""

from datetime import datetime
from typing import Optional

from flask import Flask, g
from pydal import DAL, Field
from pydal.objects import Row
from pydal.validators import (
    IS_EMAIL,
    IS_IN_SET,
    IS_MATCH,
    IS_NOT_EMPTY,
    IS_URL,
)

from .config import Config
from .plans import PLAN_ORDER

# Valid organization member roles
VALID_MEMBER_ROLES = ["owner", "admin", "member"]

# Valid plan tiers, lowest first
VALID_PLANS = [plan.value for plan in PLAN_ORDER]

VALID_SUBSCRIPTION_STATUSES = ["active", "past_due", "cancelled"]


def define_tables(db: DAL) -> DAL:
    """Define every table on an open DAL connection."""
    db.define_table(
        "users",
        Field("email", "string", length=255, unique=True, requires=[
            IS_NOT_EMPTY(error_message="Email is required"),
            IS_EMAIL(error_message="Invalid email format"),
        ]),
        Field("full_name", "string", length=255),
        Field("is_active", "boolean", default=True),
        Field("created_at", "datetime", default=datetime.utcnow),
    )

    # Organizations - Workspaces that own links, domains and a plan
    db.define_table(
        "organizations",
        Field("name", "string", length=255, requires=IS_NOT_EMPTY()),
        Field("slug", "string", length=100, unique=True, requires=[
            IS_NOT_EMPTY(),
            IS_MATCH(r"^[a-z0-9][a-z0-9\-]*[a-z0-9]$|^[a-z0-9]$",
                     error_message="Slug must be lowercase alphanumeric with hyphens"),
        ]),
        # Unvalidated: legacy rows may carry plan ids the catalog dropped
        Field("plan", "string", length=50, default="free"),
        Field("created_at", "datetime", default=datetime.utcnow),
        Field("updated_at", "datetime", default=datetime.utcnow, update=datetime.utcnow),
    )

    db.define_table(
        "members",
        Field("organization_id", "reference organizations", requires=IS_NOT_EMPTY()),
        Field("user_id", "reference users", requires=IS_NOT_EMPTY()),
        Field("role", "string", length=50, default="member", requires=IS_IN_SET(
            VALID_MEMBER_ROLES,
            error_message=f"Role must be one of: {', '.join(VALID_MEMBER_ROLES)}"
        )),
        Field("joined_at", "datetime", default=datetime.utcnow),
    )

    db.define_table(
        "subscriptions",
        Field("organization_id", "reference organizations", unique=True),
        Field("plan", "string", length=50, requires=IS_IN_SET(VALID_PLANS)),
        Field("status", "string", length=20, default="active",
              requires=IS_IN_SET(VALID_SUBSCRIPTION_STATUSES)),
        Field("current_period_start", "datetime"),
        Field("current_period_end", "datetime"),
        Field("cancel_at_period_end", "boolean", default=False),
        Field("created_at", "datetime", default=datetime.utcnow),
        Field("updated_at", "datetime", default=datetime.utcnow, update=datetime.utcnow),
    )

    # Custom domains - verified through a DNS TXT challenge
    db.define_table(
        "domains",
        Field("organization_id", "reference organizations", requires=IS_NOT_EMPTY()),
        Field("name", "string", length=255, unique=True, requires=IS_NOT_EMPTY()),
        Field("verification_token", "string", length=64),
        Field("verified_at", "datetime"),
        Field("created_at", "datetime", default=datetime.utcnow),
    )

    db.define_table(
        "links",
        Field("organization_id", "reference organizations", requires=IS_NOT_EMPTY()),
        Field("domain_id", "reference domains"),  # None means the default domain
        Field("created_by", "reference users"),
        Field("short_code", "string", length=50, requires=IS_NOT_EMPTY()),
        Field("original_url", "text", requires=IS_URL()),
        Field("created_at", "datetime", default=datetime.utcnow),
    )

    db.define_table(
        "tags",
        Field("organization_id", "reference organizations", requires=IS_NOT_EMPTY()),
        Field("name", "string", length=50, requires=IS_NOT_EMPTY()),
        Field("created_at", "datetime", default=datetime.utcnow),
    )

    db.define_table(
        "api_keys",
        Field("organization_id", "reference organizations", requires=IS_NOT_EMPTY()),
        Field("name", "string", length=100),
        Field("key_hash", "string", length=64),
        Field("created_at", "datetime", default=datetime.utcnow),
    )

    db.define_table(
        "link_clicks",
        Field("link_id", "reference links", requires=IS_NOT_EMPTY()),
        Field("clicked_at", "datetime", default=datetime.utcnow),
    )

    db.commit()
    return db


def init_db(app: Flask) -> DAL:
    """Initialize database connection and define tables."""
    db = DAL(
        app.config.get("DB_URI") or Config.get_db_uri(),
        pool_size=app.config.get("DB_POOL_SIZE", Config.DB_POOL_SIZE),
        folder=app.config.get("DB_FOLDER"),
        migrate=True,
        lazy_tables=False,
    )
    define_tables(db)

    # Store db instance in app
    app.config["db"] = db

    return db


def get_db() -> DAL:
    """Get database connection for current request context."""
    from flask import current_app

    if "db" not in g:
        g.db = current_app.config.get("db")
    return g.db


def get_organization(db: DAL, organization_id: int) -> Optional[Row]:
    """Get organization row by ID."""
    return db(db.organizations.id == organization_id).select().first()


def get_membership(db: DAL, organization_id: int, user_id: int) -> Optional[Row]:
    """Get a user's membership row in an organization."""
    return db(
        (db.members.organization_id == organization_id) &
        (db.members.user_id == user_id)
    ).select().first()
