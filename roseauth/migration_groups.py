"""The third schema migration: groups, their members, filters and permissions."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Connection

from roseauth.migration_initial import _create_index, _create_table, _drop_foreign_key

_metadata = sa.MetaData()

_FALSE = sa.false()

_TYPES: dict[str, tuple[str, ...]] = {
    "group_type": ("Open", "Apply", "Auto", "Hidden"),
    "group_filter_type": ("All", "Any"),
    "group_filter_criteria": ("Group", "Corporation", "Alliance", "Role"),
    "group_filter_criteria_type": ("Is", "IsNot", "GreaterThan", "LessThan"),
}


def _column_type(name: str) -> sa.Enum:
    # Bound to the metadata so that dropping one table never drops a shared type.
    return sa.Enum(*_TYPES[name], name=name, metadata=_metadata)


def _create_type(conn: Connection, name: str) -> None:
    # Only PostgreSQL has named enumeration types; elsewhere the values are strings.
    if conn.dialect.name == "postgresql":
        postgresql.ENUM(*_TYPES[name], name=name).create(conn, checkfirst=True)


def _drop_type(conn: Connection, name: str) -> None:
    if conn.dialect.name == "postgresql":
        postgresql.ENUM(*_TYPES[name], name=name).drop(conn)


# Tables created by earlier migrations, declared here only so references resolve.
sa.Table("auth_user", _metadata, sa.Column("id", sa.Integer, primary_key=True))
sa.Table("auth_permission", _metadata, sa.Column("id", sa.Integer, primary_key=True))

_fk_group_user_group = sa.ForeignKeyConstraint(
    ["group_id"], ["auth_group.id"], name="fk-auth_group_user-auth_group"
)
_fk_group_user_user = sa.ForeignKeyConstraint(
    ["user_id"], ["auth_user.id"], name="fk-auth_group_user-auth_permission"
)
_fk_filter_group = sa.ForeignKeyConstraint(
    ["group_id"], ["auth_group.id"], name="fk-auth_group_filter-auth_group"
)
_fk_rule_filter = sa.ForeignKeyConstraint(
    ["filter_id"], ["auth_group_filter.id"], name="fk-auth_group_filter-auth_group_filter"
)
_fk_group_permission_group = sa.ForeignKeyConstraint(
    ["group_id"], ["auth_group.id"], name="fk-auth_group_permission-auth_group"
)
_fk_group_permission_permission = sa.ForeignKeyConstraint(
    ["permission_id"],
    ["auth_permission.id"],
    name="fk-auth_group_permission-auth_permission",
)

_auth_group = sa.Table(
    "auth_group",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String, nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("confidential", sa.Boolean, nullable=False, server_default=_FALSE),
    sa.Column("group_type", _column_type("group_type"), nullable=False),
    sa.Column(
        "filter_type",
        _column_type("group_filter_type"),
        nullable=False,
        server_default="All",
    ),
)

_auth_group_user = sa.Table(
    "auth_group_user",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, nullable=False),
    sa.Column("user_id", sa.Integer, nullable=False),
    _fk_group_user_group,
    _fk_group_user_user,
)

_auth_group_filter = sa.Table(
    "auth_group_filter",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, nullable=False),
    sa.Column("filter_type", _column_type("group_filter_type"), nullable=False),
    _fk_filter_group,
)

_auth_group_filter_rule = sa.Table(
    "auth_group_filter_rule",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    # A rule without a filter is not part of a filter group.
    sa.Column("filter_id", sa.Integer, nullable=True),
    sa.Column("criteria", _column_type("group_filter_criteria"), nullable=False),
    sa.Column(
        "criteria_type", _column_type("group_filter_criteria_type"), nullable=False
    ),
    sa.Column("criteria_value", sa.String, nullable=False),
    _fk_rule_filter,
)

_auth_group_permission = sa.Table(
    "auth_group_permission",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, nullable=False),
    sa.Column("permission_id", sa.Integer, nullable=False),
    _fk_group_permission_group,
    _fk_group_permission_permission,
)

_idx_group_user_user = sa.Index("idx-auth_group_user-user_id", _auth_group_user.c.user_id)


class GroupsMigration:
    """Creates the group tables and the enumeration types they use."""

    name = "m20240303_000003_groups"

    def up(self, conn: Connection) -> None:
        _create_type(conn, "group_type")
        _create_type(conn, "group_filter_type")
        _create_table(conn, _auth_group)
        _create_table(conn, _auth_group_user)
        _create_index(conn, _idx_group_user_user)
        _create_table(conn, _auth_group_filter)
        _create_type(conn, "group_filter_criteria")
        _create_type(conn, "group_filter_criteria_type")
        _create_table(conn, _auth_group_filter_rule)
        _create_table(conn, _auth_group_permission)

    def down(self, conn: Connection) -> None:
        _drop_foreign_key(conn, _fk_group_permission_permission)
        _drop_foreign_key(conn, _fk_group_permission_group)
        _auth_group_permission.drop(conn)
        _drop_foreign_key(conn, _fk_rule_filter)
        _auth_group_filter_rule.drop(conn)
        _drop_type(conn, "group_filter_criteria_type")
        _drop_type(conn, "group_filter_criteria")
        _drop_foreign_key(conn, _fk_filter_group)
        _auth_group_filter.drop(conn)
        _drop_foreign_key(conn, _fk_group_user_user)
        _drop_foreign_key(conn, _fk_group_user_group)
        _idx_group_user_user.drop(conn)
        _auth_group_user.drop(conn)
        _auth_group.drop(conn)
        _drop_type(conn, "group_filter_type")
        _drop_type(conn, "group_type")