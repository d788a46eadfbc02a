"""The first two schema migrations: EVE data, users, ownerships and permissions."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.engine import Connection
from sqlalchemy.schema import DropConstraint

_metadata = sa.MetaData()

_FALSE = sa.false()
_NOW = sa.text("CURRENT_TIMESTAMP")


# -- m20240222_000001_initial -------------------------------------------------

_fk_corporation_alliance = sa.ForeignKeyConstraint(
    ["alliance_id"],
    ["eve_alliance.alliance_id"],
    name="fk-eve_corporation-eve_alliance",
)
_fk_character_corporation = sa.ForeignKeyConstraint(
    ["corporation_id"],
    ["eve_corporation.corporation_id"],
    name="fk-eve_character-eve_corporation",
)
_fk_ownership_user = sa.ForeignKeyConstraint(
    ["user_id"],
    ["auth_user.id"],
    name="fk-auth_user_character_ownership-auth_user",
)
_fk_ownership_character = sa.ForeignKeyConstraint(
    ["character_id"],
    ["eve_character.character_id"],
    name="fk-auth_user_character_ownership-eve_character",
)

_eve_alliance = sa.Table(
    "eve_alliance",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("alliance_id", sa.Integer, nullable=False, unique=True),
    sa.Column("alliance_name", sa.String, nullable=False),
    sa.Column("executor", sa.Integer, nullable=True),
)

_eve_corporation = sa.Table(
    "eve_corporation",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("corporation_id", sa.Integer, nullable=False, unique=True),
    sa.Column("corporation_name", sa.String, nullable=False),
    sa.Column("alliance_id", sa.Integer, nullable=True),
    sa.Column("ceo", sa.Integer, nullable=False),
    sa.Column("last_updated", sa.DateTime, nullable=False, server_default=_NOW),
    _fk_corporation_alliance,
)

_eve_character = sa.Table(
    "eve_character",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("character_id", sa.Integer, nullable=False, unique=True),
    sa.Column("character_name", sa.String, nullable=False),
    sa.Column("corporation_id", sa.Integer, nullable=False),
    sa.Column("last_updated", sa.DateTime, nullable=False, server_default=_NOW),
    _fk_character_corporation,
)

_auth_user = sa.Table(
    "auth_user",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("admin", sa.Boolean, nullable=False, server_default=_FALSE),
    sa.Column("created", sa.DateTime, nullable=False, server_default=_NOW),
)

_auth_user_character_ownership = sa.Table(
    "auth_user_character_ownership",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Integer, nullable=False),
    sa.Column("character_id", sa.Integer, nullable=False, unique=True),
    sa.Column("ownerhash", sa.String, nullable=False, unique=True),
    sa.Column("main", sa.Boolean, nullable=False, server_default=_FALSE),
    _fk_ownership_user,
    _fk_ownership_character,
)

_idx_corporation_alliance = sa.Index(
    "idx-eve_corporation-alliance_id", _eve_corporation.c.alliance_id
)
# The index carries the corporation name but covers the character id column.
_idx_character_corporation = sa.Index(
    "idx-eve_character-corporation_id", _eve_character.c.character_id
)
_idx_ownership_user = sa.Index(
    "idx-auth_user_character_ownership-user_id",
    _auth_user_character_ownership.c.user_id,
)


# -- m20240302_000002_permissions ---------------------------------------------

_fk_user_permission_user = sa.ForeignKeyConstraint(
    ["user_id"],
    ["auth_user.id"],
    name="fk-auth_user_permission-auth_user",
)
# The permission reference sits on the user column, as in the stored schema.
_fk_user_permission_permission = sa.ForeignKeyConstraint(
    ["user_id"],
    ["auth_permission.id"],
    name="fk-auth_user_permission-auth_permission",
)

_auth_permission = sa.Table(
    "auth_permission",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("module", sa.String, nullable=False),
    sa.Column("name", sa.String, nullable=False),
    sa.Column("hidden", sa.Boolean, nullable=False, server_default=_FALSE),
)

_auth_user_permission = sa.Table(
    "auth_user_permission",
    _metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Integer, nullable=False),
    sa.Column("permission_id", sa.Integer, nullable=False),
    _fk_user_permission_user,
    _fk_user_permission_permission,
)


def _create_table(conn: Connection, table: sa.Table) -> None:
    table.create(conn, checkfirst=True)


def _create_index(conn: Connection, index: sa.Index) -> None:
    index.create(conn, checkfirst=True)


def _drop_foreign_key(conn: Connection, constraint: sa.ForeignKeyConstraint) -> None:
    # SQLite cannot alter constraints; they go away with their table.
    if conn.dialect.name == "sqlite":
        return
    conn.execute(DropConstraint(constraint))


class InitialMigration:
    """Creates the EVE alliance, corporation and character tables and the user tables."""

    name = "m20240222_000001_initial"

    def up(self, conn: Connection) -> None:
        _create_table(conn, _eve_alliance)
        _create_table(conn, _eve_corporation)
        _create_index(conn, _idx_corporation_alliance)
        _create_table(conn, _eve_character)
        _create_index(conn, _idx_character_corporation)
        _create_table(conn, _auth_user)
        _create_table(conn, _auth_user_character_ownership)
        _create_index(conn, _idx_ownership_user)

    def down(self, conn: Connection) -> None:
        _drop_foreign_key(conn, _fk_ownership_character)
        _drop_foreign_key(conn, _fk_ownership_user)
        _idx_ownership_user.drop(conn)
        _auth_user_character_ownership.drop(conn)
        _auth_user.drop(conn)
        _drop_foreign_key(conn, _fk_character_corporation)
        _idx_character_corporation.drop(conn)
        _eve_character.drop(conn)
        _drop_foreign_key(conn, _fk_corporation_alliance)
        _idx_corporation_alliance.drop(conn)
        _eve_corporation.drop(conn)
        _eve_alliance.drop(conn)


class PermissionsMigration:
    """Creates the permission table and the table granting permissions to users."""

    name = "m20240302_000002_permissions"

    def up(self, conn: Connection) -> None:
        _create_table(conn, _auth_permission)
        _create_table(conn, _auth_user_permission)

    def down(self, conn: Connection) -> None:
        _drop_foreign_key(conn, _fk_user_permission_permission)
        _drop_foreign_key(conn, _fk_user_permission_user)
        _auth_permission.drop(conn)