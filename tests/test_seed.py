import string

import pytest
import sqlalchemy as sa

from roseauth import auth_data
from roseauth.schema import auth_permission, metadata
from roseauth.seed import (
    ADMIN_SETUP_KEY,
    ADMIN_SETUP_TTL,
    create_admin,
    generate_setup_code,
    seed_auth_permissions,
)


class FakeStore:
    def __init__(self):
        self.entries = {}

    def setex(self, name, time, value):
        self.entries[name] = (time, value)
        return True


@pytest.fixture
def conn():
    engine = sa.create_engine("sqlite://")
    metadata.create_all(engine)
    with engine.begin() as connection:
        yield connection
    engine.dispose()


def test_setup_code_is_alphanumeric_and_bounded():
    alphabet = set(string.ascii_letters + string.digits)
    for _ in range(200):
        code = generate_setup_code()
        assert 20 <= len(code) <= 64
        assert set(code) <= alphabet


def test_setup_codes_differ():
    codes = {generate_setup_code() for _ in range(20)}
    assert len(codes) == 20


def test_seed_auth_permissions_stores_nothing(conn):
    assert seed_auth_permissions(conn) == []
    count = conn.execute(sa.select(sa.func.count()).select_from(auth_permission)).scalar()
    assert count == 0


def test_seed_auth_permissions_is_repeatable(conn):
    first = seed_auth_permissions(conn)
    second = seed_auth_permissions(conn)
    assert first == second


def test_create_admin_without_admin_stores_code(conn, capsys):
    store = FakeStore()
    code = create_admin(conn, "auth.example.com", store)
    assert store.entries[ADMIN_SETUP_KEY] == (ADMIN_SETUP_TTL, code)
    assert ADMIN_SETUP_KEY == "admin_setup_code"
    assert ADMIN_SETUP_TTL == 300
    out = capsys.readouterr().out
    assert f"http://auth.example.com/auth/login?admin_setup={code}" in out
    assert "expire if not used within 5 minutes" in out


def test_create_admin_with_admin_does_nothing(conn, capsys):
    user_id = auth_data.create_user(conn)
    auth_data.update_user_as_admin(conn, user_id)
    store = FakeStore()
    assert create_admin(conn, "auth.example.com", store, debug=False) is None
    assert store.entries == {}
    assert capsys.readouterr().out == ""


def test_create_admin_with_admin_in_debug_prints_login(conn, capsys):
    user_id = auth_data.create_user(conn)
    auth_data.update_user_as_admin(conn, user_id)
    store = FakeStore()
    assert create_admin(conn, "auth.example.com", store, debug=True) is None
    assert store.entries == {}
    assert "Login at http://auth.example.com/auth/login" in capsys.readouterr().out


def test_non_admin_user_does_not_count(conn):
    auth_data.create_user(conn)
    store = FakeStore()
    code = create_admin(conn, "auth.example.com", store)
    assert store.entries[ADMIN_SETUP_KEY][1] == code