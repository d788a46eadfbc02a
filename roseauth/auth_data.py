"""Stored users, character ownerships, permissions and groups."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Connection

from roseauth.enums import GroupType, NewGroupDto
from roseauth.schema import (
    CharacterOwnership,
    Group,
    Permission,
    User,
    auth_group,
    auth_permission,
    auth_user,
    auth_user_character_ownership,
)

_ownership = auth_user_character_ownership


def _select_one(conn: Connection, table: sa.Table, model: Any, *where: Any) -> Any:
    row = conn.execute(sa.select(table).where(*where).order_by(table.c.id)).first()
    return model.from_row(row) if row is not None else None


def _select_all(conn: Connection, table: sa.Table, model: Any, *where: Any) -> list:
    rows = conn.execute(sa.select(table).where(*where).order_by(table.c.id))
    return [model.from_row(row) for row in rows]


def _insert(conn: Connection, table: sa.Table, model: Any, **values: Any) -> Any:
    result = conn.execute(table.insert().values(**values))
    return _select_one(conn, table, model, table.c.id == result.inserted_primary_key[0])


def _update(conn: Connection, table: sa.Table, model: Any, row_id: int, **values: Any) -> Any:
    result = conn.execute(table.update().where(table.c.id == row_id).values(**values))
    if result.rowcount == 0:
        return None
    return _select_one(conn, table, model, table.c.id == row_id)


# -- groups --------------------------------------------------------------------


def create_group(conn: Connection, new_group: NewGroupDto) -> Group:
    return _insert(
        conn,
        auth_group,
        Group,
        name=new_group.name,
        description=new_group.description,
        confidential=new_group.confidential,
        group_type=GroupType(new_group.group_type),
    )


def get_groups(conn: Connection) -> list[Group]:
    return _select_all(conn, auth_group, Group)


def get_group_by_id(conn: Connection, group_id: int) -> Group | None:
    return _select_one(conn, auth_group, Group, auth_group.c.id == group_id)


def update_group(conn: Connection, group_id: int, updated_group: NewGroupDto) -> Group:
    """Replace a group's details; raise LookupError if there is no such group."""
    group = _update(
        conn,
        auth_group,
        Group,
        group_id,
        name=updated_group.name,
        description=updated_group.description,
        confidential=updated_group.confidential,
        group_type=GroupType(updated_group.group_type),
    )
    if group is None:
        raise LookupError(f"group {group_id} not found")
    return group


def delete_group(conn: Connection, group_id: int) -> int | None:
    """Delete a group; return its id, or None if nothing was deleted."""
    result = conn.execute(auth_group.delete().where(auth_group.c.id == group_id))
    return group_id if result.rowcount == 1 else None


# -- permissions ---------------------------------------------------------------


def create_permission(conn: Connection, module: str, name: str, hidden: bool) -> Permission:
    """Return the permission with this module and name, creating it if needed."""
    existing = get_permission_by_name(conn, module, name)
    if existing is not None:
        return existing
    return _insert(conn, auth_permission, Permission, module=module, name=name, hidden=hidden)


def get_permission_by_name(conn: Connection, module: str, name: str) -> Permission | None:
    return _select_one(
        conn,
        auth_permission,
        Permission,
        auth_permission.c.module == module,
        auth_permission.c.name == name,
    )


# -- users and ownerships ------------------------------------------------------


def create_user(conn: Connection) -> int:
    """Create a user with default settings and return its id."""
    return _insert(conn, auth_user, User).id


def get_user(conn: Connection, user_id: int) -> User | None:
    return _select_one(conn, auth_user, User, auth_user.c.id == user_id)


def get_user_main_character(conn: Connection, user_id: int) -> CharacterOwnership | None:
    return next(
        (ownership for ownership in get_user_character_ownerships(conn, user_id) if ownership.main),
        None,
    )


def update_ownership(
    conn: Connection, user_id: int, character_id: int, ownerhash: str
) -> CharacterOwnership:
    """Record that the user owns the character, moving it from any previous owner."""
    existing = get_character_ownership(conn, character_id)

    if existing is None:
        main = not get_user_character_ownerships(conn, user_id)
        return _insert(
            conn,
            _ownership,
            CharacterOwnership,
            user_id=user_id,
            character_id=character_id,
            ownerhash=ownerhash,
            main=main,
        )

    if existing.ownerhash == ownerhash and existing.user_id == user_id:
        return existing

    owned = get_user_character_ownerships(conn, existing.user_id)
    if len(owned) > 1 and existing.main:
        successor = next((ownership for ownership in owned if not ownership.main), None)
        if successor is not None:
            _update(conn, _ownership, CharacterOwnership, successor.id, main=True)

    main = not get_user_character_ownerships(conn, user_id)
    return _update(
        conn,
        _ownership,
        CharacterOwnership,
        existing.id,
        user_id=user_id,
        ownerhash=ownerhash,
        main=main,
    )


def get_character_ownership(conn: Connection, character_id: int) -> CharacterOwnership | None:
    return _select_one(
        conn, _ownership, CharacterOwnership, _ownership.c.character_id == character_id
    )


def get_user_character_ownerships(conn: Connection, user_id: int) -> list[CharacterOwnership]:
    return _select_all(conn, _ownership, CharacterOwnership, _ownership.c.user_id == user_id)


def get_user_character_ownership_by_ownerhash(
    conn: Connection, ownerhash: str
) -> CharacterOwnership | None:
    return _select_one(conn, _ownership, CharacterOwnership, _ownership.c.ownerhash == ownerhash)


def update_user_main(conn: Connection, character_id: int) -> CharacterOwnership | None:
    """Make the character its owner's main; None unless the owner had a main to replace."""
    new_main = get_character_ownership(conn, character_id)
    if new_main is None:
        return None
    old_main = _select_one(
        conn,
        _ownership,
        CharacterOwnership,
        _ownership.c.user_id == new_main.user_id,
        _ownership.c.main == sa.true(),
    )
    if old_main is None:
        return None
    _update(conn, _ownership, CharacterOwnership, old_main.id, main=False)
    return _update(conn, _ownership, CharacterOwnership, new_main.id, main=True)


def update_user_as_admin(conn: Connection, user_id: int) -> User | None:
    return _update(conn, auth_user, User, user_id, admin=True)


def get_users_with_admin(conn: Connection) -> list[User]:
    return _select_all(conn, auth_user, User, auth_user.c.admin == sa.true())