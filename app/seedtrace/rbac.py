from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.seedtrace.models import User


def current_user() -> User | None:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_user() is None:
            return jsonify({"message": "Authentication required"}), 401
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            # Unauthenticated -> 401, authenticated but unauthorized -> 403.
            if user is None:
                return jsonify({"message": "Authentication required"}), 401
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                return jsonify({"message": "Access denied", "missing_permission": permission_key}), 403
            return fn(*args, **kwargs)

        return wrapped

    return decorator
