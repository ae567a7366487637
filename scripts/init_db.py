"""
Seed permissions, the admin/operator roles and the first admin account.

Idempotent; never overwrites an existing user's password.

Usage:
  python scripts/init_db.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.seedtrace.constants import ADMIN_PERMISSIONS, OPERATOR_PERMISSIONS  # noqa: E402
from app.seedtrace.models import Permission, Role, User  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def seed_rbac(s) -> dict[str, Role]:
    """Create missing permissions and roles, attach permissions. Returns roles by key."""
    perms: dict[str, Permission] = {}

    def ensure_perm(key: str, name: str) -> Permission:
        if key in perms:
            return perms[key]
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p
        return p

    def ensure_role(key: str, name: str, grants) -> Role:
        role = s.query(Role).filter(Role.key == key).one_or_none()
        if not role:
            role = Role(key=key, name=name)
            s.add(role)
        for perm_key, perm_name in grants:
            p = ensure_perm(perm_key, perm_name)
            if p not in role.permissions:
                role.permissions.append(p)
        return role

    for key, name in ADMIN_PERMISSIONS + OPERATOR_PERMISSIONS:
        ensure_perm(key, name)

    roles = {
        "admin": ensure_role("admin", "Administrator", ADMIN_PERMISSIONS),
        "operator": ensure_role("operator", "Operator", OPERATOR_PERMISSIONS),
    }
    s.flush()
    return roles


def ensure_user(s, *, username: str, email: str, password: str, role: Role) -> User:
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user:
        user = User(username=username, email=email, password_hash=generate_password_hash(password), is_active=True)
        s.add(user)
    if role not in user.roles:
        user.roles.append(role)
    return user


def seed_only(*, database_url: str | None = None) -> None:
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip().lower()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@greengoldseeds.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(resolve_database_url(database_url)) as s:
        roles = seed_rbac(s)
        ensure_user(s, username=admin_username, email=admin_email, password=admin_password, role=roles["admin"])

    print("Initialized database (seed_only).")
    print(f"Admin username: {admin_username}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
