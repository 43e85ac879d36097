"""Simple admin authentication endpoints."""

from __future__ import annotations

import hmac
import logging
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from flask import Blueprint, jsonify, request, session

from .common import get_settings

auth_simple_bp = Blueprint("auth_simple", __name__)

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def require_admin(func: _F) -> _F:
    """Ensure the current session belongs to the admin user."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        if not session.get("is_admin"):
            return jsonify({"error": "forbidden"}), 403
        return func(*args, **kwargs)

    return cast(_F, wrapper)


@auth_simple_bp.post("/api/login")
def login():
    payload = request.get_json(silent=True) or {}
    username = str(payload.get("username", "")).strip()
    password = str(payload.get("password", ""))

    settings = get_settings()
    user_ok = hmac.compare_digest(username.encode(), settings.admin_user.encode())
    pass_ok = hmac.compare_digest(password.encode(), settings.admin_pass.encode())

    if user_ok and pass_ok:
        session.clear()
        session["is_admin"] = True
        session.permanent = False
        logger.info("Admin login from %s", request.remote_addr)
        return (
            jsonify({
                "ok": True,
                "user": {"username": settings.admin_user, "role": "admin"},
            }),
            200,
        )

    session.pop("is_admin", None)
    logger.warning("Rejected login attempt for %r", username)
    return jsonify({"error": "invalid_credentials"}), 401


@auth_simple_bp.post("/api/logout")
def logout():
    session.clear()
    return jsonify({"ok": True})


@auth_simple_bp.get("/api/me")
def me():
    return jsonify({"is_admin": bool(session.get("is_admin", False))})


__all__ = ["auth_simple_bp", "require_admin"]
