import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, OperationalError

from roseauth.migration_initial import InitialMigration, PermissionsMigration

INITIAL_TABLES = {
    "eve_alliance",
    "eve_corporation",
    "eve_character",
    "auth_user",
    "auth_user_character_ownership",
}
PERMISSION_TABLES = {"auth_permission", "auth_user_permission"}


@pytest.fixture
def conn():
    engine = sa.create_engine("sqlite://")
    with engine.begin() as connection:
        yield connection
    engine.dispose()


def tables(conn):
    return set(sa.inspect(conn).get_table_names())


def index_columns(conn, table):
    return {ix["name"]: ix["column_names"] for ix in sa.inspect(conn).get_indexes(table)}


def foreign_keys(conn, table):
    return {
        (tuple(fk["constrained_columns"]), fk["referred_table"], tuple(fk["referred_columns"]))
        for fk in sa.inspect(conn).get_foreign_keys(table)
    }


def test_initial_up_creates_tables(conn):
    InitialMigration().up(conn)
    assert tables(conn) == INITIAL_TABLES


def test_initial_up_is_idempotent(conn):
    migration = InitialMigration()
    migration.up(conn)
    migration.up(conn)
    assert tables(conn) == INITIAL_TABLES


def test_initial_indexes(conn):
    InitialMigration().up(conn)
    assert index_columns(conn, "eve_corporation")["idx-eve_corporation-alliance_id"] == [
        "alliance_id"
    ]
    assert index_columns(conn, "eve_character")["idx-eve_character-corporation_id"] == [
        "character_id"
    ]
    assert index_columns(conn, "auth_user_character_ownership")[
        "idx-auth_user_character_ownership-user_id"
    ] == ["user_id"]


def test_initial_foreign_keys(conn):
    InitialMigration().up(conn)
    assert (("alliance_id",), "eve_alliance", ("alliance_id",)) in foreign_keys(
        conn, "eve_corporation"
    )
    assert (("corporation_id",), "eve_corporation", ("corporation_id",)) in foreign_keys(
        conn, "eve_character"
    )
    ownership = foreign_keys(conn, "auth_user_character_ownership")
    assert (("user_id",), "auth_user", ("id",)) in ownership
    assert (("character_id",), "eve_character", ("character_id",)) in ownership


def test_auth_user_defaults(conn):
    InitialMigration().up(conn)
    conn.execute(sa.text("INSERT INTO auth_user DEFAULT VALUES"))
    row = conn.execute(sa.text("SELECT id, admin, created FROM auth_user")).one()
    assert row.id == 1
    assert not row.admin
    assert row.created is not None


def test_alliance_id_is_unique(conn):
    InitialMigration().up(conn)
    insert = sa.text(
        "INSERT INTO eve_alliance (alliance_id, alliance_name) VALUES (:aid, :name)"
    )
    conn.execute(insert, {"aid": 99, "name": "First"})
    with pytest.raises(IntegrityError):
        conn.execute(insert, {"aid": 99, "name": "Second"})


def test_ownerhash_is_unique(conn):
    InitialMigration().up(conn)
    insert = sa.text(
        "INSERT INTO auth_user_character_ownership (user_id, character_id, ownerhash) "
        "VALUES (:uid, :cid, :hash)"
    )
    conn.execute(insert, {"uid": 1, "cid": 10, "hash": "abc"})
    with pytest.raises(IntegrityError):
        conn.execute(insert, {"uid": 1, "cid": 11, "hash": "abc"})


def test_initial_down_removes_everything(conn):
    migration = InitialMigration()
    migration.up(conn)
    migration.down(conn)
    assert tables(conn) == set()


def test_initial_down_without_up_fails(conn):
    with pytest.raises(OperationalError):
        InitialMigration().down(conn)


def test_initial_round_trip_twice(conn):
    migration = InitialMigration()
    for _ in range(2):
        migration.up(conn)
        migration.down(conn)
    migration.up(conn)
    assert tables(conn) == INITIAL_TABLES


def test_permissions_up_creates_tables(conn):
    InitialMigration().up(conn)
    PermissionsMigration().up(conn)
    assert tables(conn) == INITIAL_TABLES | PERMISSION_TABLES


def test_permissions_foreign_keys_on_user_column(conn):
    InitialMigration().up(conn)
    PermissionsMigration().up(conn)
    keys = foreign_keys(conn, "auth_user_permission")
    assert (("user_id",), "auth_user", ("id",)) in keys
    assert (("user_id",), "auth_permission", ("id",)) in keys


def test_permission_hidden_defaults_false(conn):
    InitialMigration().up(conn)
    PermissionsMigration().up(conn)
    conn.execute(
        sa.text("INSERT INTO auth_permission (module, name) VALUES ('Auth', 'Admin')")
    )
    row = conn.execute(sa.text("SELECT module, name, hidden FROM auth_permission")).one()
    assert (row.module, row.name) == ("Auth", "Admin")
    assert not row.hidden


def test_permissions_down_drops_only_permission_table(conn):
    InitialMigration().up(conn)
    migration = PermissionsMigration()
    migration.up(conn)
    migration.down(conn)
    remaining = tables(conn)
    assert "auth_permission" not in remaining
    assert "auth_user_permission" in remaining
    assert INITIAL_TABLES <= remaining


def test_migration_names():
    assert InitialMigration().name == "m20240222_000001_initial"
    assert PermissionsMigration().name == "m20240302_000002_permissions"