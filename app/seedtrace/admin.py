import re
from datetime import date, datetime, time, timedelta

from flask import Blueprint, jsonify, request
from werkzeug.security import generate_password_hash

from app.seedtrace.audit import record_event
from app.seedtrace.db import db_session
from app.seedtrace.models import AuditEvent, Role, User
from app.seedtrace.rbac import require_permission
from app.seedtrace.utils import current_user_or_raise, request_data

bp = Blueprint("admin", __name__)

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_USERNAME_RE = re.compile(r"^[a-z0-9._-]{3,64}$")


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/users")
@require_permission("users.manage")
def users_list():
    s = db_session()
    users = s.query(User).order_by(User.username.asc()).all()
    return jsonify([u.to_dict() for u in users])


@bp.post("/users")
@require_permission("users.manage")
def users_create():
    s = db_session()
    u = current_user_or_raise()
    data = request_data()

    username = (data.get("username") or "").strip().lower()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    role_key = (data.get("role") or "operator").strip().lower()

    errors = []
    if not _USERNAME_RE.match(username):
        errors.append("Username must be 3-64 characters: letters, digits, '.', '_' or '-'.")
    elif s.query(User).filter(User.username == username).one_or_none():
        errors.append("An account with this username already exists.")

    if not email:
        errors.append("Email is required.")
    elif not _EMAIL_RE.match(email):
        errors.append("Invalid email format.")
    elif s.query(User).filter(User.email == email).one_or_none():
        errors.append("An account with this email already exists.")

    if len(password) < 8:
        errors.append("Password must be at least 8 characters.")

    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        errors.append(f"Unknown role: {role_key}")

    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    new_user = User(username=username, email=email, password_hash=generate_password_hash(password), is_active=True)
    new_user.roles.append(role)
    s.add(new_user)
    s.flush()

    record_event(
        s,
        actor=u,
        action="user.create",
        entity_type="User",
        entity_id=str(new_user.id),
        metadata={"username": username, "email": email, "roles": new_user.role_keys},
    )
    s.commit()
    return jsonify(new_user.to_dict()), 201


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Last 200 audit events, newest first. Filters:
    - action (contains)
    - actor_email (contains)
    - date_from / date_to (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    for key, parsed in (("date_from", date_from), ("date_to", date_to)):
        if (request.args.get(key) or "").strip() and not parsed:
            return jsonify({"message": f"{key} must be YYYY-MM-DD"}), 400

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify([e.to_dict() for e in events])
