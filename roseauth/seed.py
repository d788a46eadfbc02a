"""Start-up seeding: auth permissions and the one-time admin setup link."""

from __future__ import annotations

import secrets
import string
from typing import Any, Protocol

from sqlalchemy.engine import Connection

from roseauth.auth_data import create_permission, get_users_with_admin
from roseauth.schema import Permission

ADMIN_SETUP_KEY = "admin_setup_code"
ADMIN_SETUP_TTL = 300

_ALPHANUMERIC = string.ascii_letters + string.digits
_CODE_MIN_LENGTH = 20
_CODE_MAX_LENGTH = 64

_AUTH_MODULE = "Auth"
# (name, hidden) of every permission the auth module defines.
_AUTH_PERMISSIONS: tuple[tuple[str, bool], ...] = ()


class _ExpiringStore(Protocol):
    def setex(self, name: str, time: int, value: Any) -> Any: ...


def generate_setup_code() -> str:
    """A random alphanumeric code of 20 to 64 characters."""
    length = secrets.SystemRandom().randint(_CODE_MIN_LENGTH, _CODE_MAX_LENGTH)
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def seed_auth_permissions(conn: Connection) -> list[Permission]:
    """Make sure every permission of the auth module is stored; return them."""
    return [
        create_permission(conn, _AUTH_MODULE, name, hidden)
        for name, hidden in _AUTH_PERMISSIONS
    ]


def create_admin(
    conn: Connection,
    backend_domain: str,
    store: _ExpiringStore,
    debug: bool = False,
) -> str | None:
    """Offer an admin setup link when no admin exists.

    The setup code is kept in the store for five minutes and returned; if an
    admin already exists nothing is stored and None is returned.
    """
    if get_users_with_admin(conn):
        if debug:
            print(f"\nLogin at http://{backend_domain}/auth/login")
        return None

    code = generate_setup_code()
    store.setex(ADMIN_SETUP_KEY, ADMIN_SETUP_TTL, code)

    login_link = f"http://{backend_domain}/auth/login?admin_setup={code}"
    print(
        "\nCreate an admin account by logging in with EVE Online via: "
        f"{login_link}\nThe admin login link will expire if not used within 5 minutes."
    )
    return code