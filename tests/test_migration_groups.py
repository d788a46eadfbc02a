import pytest
import sqlalchemy as sa

from roseauth.migration_groups import GroupsMigration
from roseauth.migration_initial import InitialMigration, PermissionsMigration

GROUP_TABLES = {
    "auth_group",
    "auth_group_user",
    "auth_group_filter",
    "auth_group_filter_rule",
    "auth_group_permission",
}


@pytest.fixture
def engine(tmp_path):
    eng = sa.create_engine(f"sqlite:///{tmp_path / 'groups.sqlite'}")
    with eng.begin() as conn:
        InitialMigration().up(conn)
        PermissionsMigration().up(conn)
    yield eng
    eng.dispose()


@pytest.fixture
def migrated(engine):
    with engine.begin() as conn:
        GroupsMigration().up(conn)
    return engine


def _tables(engine):
    return set(sa.inspect(engine).get_table_names())


def test_up_creates_group_tables(migrated):
    assert GROUP_TABLES <= _tables(migrated)


def test_migration_name():
    assert GroupsMigration().name == "m20240303_000003_groups"


def test_auth_group_columns(migrated):
    columns = sa.inspect(migrated).get_columns("auth_group")
    assert [c["name"] for c in columns] == [
        "id",
        "name",
        "description",
        "confidential",
        "group_type",
        "filter_type",
    ]
    nullable = {c["name"]: c["nullable"] for c in columns}
    assert nullable["description"] is True
    assert nullable["group_type"] is False


def test_group_user_index(migrated):
    indexes = sa.inspect(migrated).get_indexes("auth_group_user")
    names = {index["name"]: index["column_names"] for index in indexes}
    assert names["idx-auth_group_user-user_id"] == ["user_id"]


def test_group_user_foreign_keys(migrated):
    fks = sa.inspect(migrated).get_foreign_keys("auth_group_user")
    by_name = {fk["name"]: fk for fk in fks}
    assert set(by_name) == {
        "fk-auth_group_user-auth_group",
        "fk-auth_group_user-auth_permission",
    }
    assert by_name["fk-auth_group_user-auth_group"]["referred_table"] == "auth_group"
    assert by_name["fk-auth_group_user-auth_permission"]["referred_table"] == "auth_user"


def test_group_permission_foreign_keys(migrated):
    fks = sa.inspect(migrated).get_foreign_keys("auth_group_permission")
    referred = {fk["name"]: (fk["constrained_columns"], fk["referred_table"]) for fk in fks}
    assert referred["fk-auth_group_permission-auth_permission"] == (
        ["permission_id"],
        "auth_permission",
    )
    assert referred["fk-auth_group_permission-auth_group"] == (["group_id"], "auth_group")


def test_filter_type_and_confidential_defaults(migrated):
    with migrated.begin() as conn:
        conn.execute(
            sa.text("INSERT INTO auth_group (name, group_type) VALUES ('Pilots', 'Open')")
        )
        row = conn.execute(
            sa.text("SELECT filter_type, confidential, group_type FROM auth_group")
        ).one()
    assert row.filter_type == "All"
    assert not row.confidential
    assert row.group_type == "Open"


def test_rule_without_filter_is_allowed(migrated):
    with migrated.begin() as conn:
        conn.execute(
            sa.text(
                "INSERT INTO auth_group_filter_rule "
                "(filter_id, criteria, criteria_type, criteria_value) "
                "VALUES (NULL, 'Corporation', 'IsNot', '42')"
            )
        )
        row = conn.execute(sa.text("SELECT * FROM auth_group_filter_rule")).one()
    assert row.filter_id is None
    assert row.criteria_type == "IsNot"
    assert row.criteria_value == "42"


def test_up_twice_keeps_tables(migrated):
    before = _tables(migrated)
    with migrated.begin() as conn:
        GroupsMigration().up(conn)
    assert _tables(migrated) == before


def test_down_removes_group_tables_only(migrated):
    with migrated.begin() as conn:
        GroupsMigration().down(conn)
    tables = _tables(migrated)
    assert tables.isdisjoint(GROUP_TABLES)
    assert {"auth_user", "auth_permission"} <= tables


def test_down_without_tables_fails(engine):
    with pytest.raises(sa.exc.OperationalError):
        with engine.begin() as conn:
            GroupsMigration().down(conn)