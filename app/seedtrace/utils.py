from __future__ import annotations

from flask import g, request

from app.seedtrace.models import User


def request_data() -> dict:
    """JSON body when sent as JSON, else the form fields (multipart/urlencoded)."""
    if request.is_json:
        data = request.get_json(silent=True) or {}
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def current_user_or_raise() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def parse_int(v) -> int | None:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None
