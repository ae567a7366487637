from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from sqlalchemy import or_
from werkzeug.security import check_password_hash

from app.seedtrace.audit import record_event
from app.seedtrace.db import db_session
from app.seedtrace.models import User
from app.seedtrace.security import ensure_csrf_token
from app.seedtrace.utils import request_data

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login():
    data = request_data()
    login_name = (data.get("username") or data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    ip = request.remote_addr or "unknown"

    if not login_name or not password:
        return jsonify({"message": "Username and password are required"}), 400

    if _check_rate_limit(ip):
        return jsonify({"message": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)

    try:
        s = db_session()
        user = (
            s.query(User)
            .filter(or_(User.username == login_name, User.email == login_name))
            .one_or_none()
        )
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=login_name,
                reason="Invalid credentials",
            )
            s.commit()
            return jsonify({"message": "Invalid credentials"}), 401

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        payload = user.to_dict()
        payload["csrf_token"] = ensure_csrf_token()
        return jsonify(payload)
    except Exception:
        current_app.logger.exception("Login crashed (login=%s request_id=%s)", login_name, getattr(g, "request_id", None))
        raise


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return jsonify({"message": "Logged out successfully"})


@bp.get("/user")
def me():
    user = getattr(g, "current_user", None)
    if not user:
        return jsonify({"message": "Not authenticated"}), 401
    payload = user.to_dict()
    payload["csrf_token"] = ensure_csrf_token()
    return jsonify(payload)
