"""
Bearer token decoding.

Sessions are issued by the auth service; this module only turns an
``Authorization: Bearer <jwt>`` header into ``g.current_user`` so actions
can ask for the current session.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import jwt
from flask import Flask, current_app, g, request

from .auth_guards import Session
from .models import get_db

logger = logging.getLogger(__name__)


def create_access_token(user_id: int, secret_key: Optional[str] = None,
                        expires_in=None) -> str:
    """Create JWT access token (used by tooling and tests)."""
    secret_key = secret_key or current_app.config["JWT_SECRET_KEY"]
    expires_in = expires_in or current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "type": "access",
        "exp": now + expires_in,
        "iat": now,
    }
    return jwt.encode(payload, secret_key, algorithm="HS256")


def decode_access_token(token: str, secret_key: str) -> Optional[int]:
    """Return the user id in a valid access token, or None."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except jwt.InvalidTokenError:
        logger.info("Rejected invalid access token")
        return None

    if payload.get("type") != "access":
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


def load_current_user() -> None:
    """before_request hook: populate g.current_user from the bearer token."""
    g.current_user = None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return

    user_id = decode_access_token(auth_header[7:], current_app.config["JWT_SECRET_KEY"])
    if user_id is None:
        return

    db = get_db()
    user = db(db.users.id == user_id).select().first()
    if not user or not user.is_active:
        return

    g.current_user = {"id": user.id, "email": user.email}


def current_session() -> Optional[Session]:
    """Session accessor backed by the Flask request context."""
    user = g.get("current_user")
    if not user:
        return None
    return Session(user_id=user["id"], email=user.get("email"))


def init_auth(app: Flask) -> None:
    app.before_request(load_current_user)
