"""Database tables and the row models read from them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa

from roseauth.enums import (
    GroupDto,
    GroupFilterCriteria,
    GroupFilterCriteriaType,
    GroupFilterType,
    GroupType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_type(enum_cls: type, name: str) -> sa.Enum:
    return sa.Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


metadata = sa.MetaData()

eve_alliance = sa.Table(
    "eve_alliance",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("alliance_id", sa.Integer, nullable=False, unique=True),
    sa.Column("alliance_name", sa.String, nullable=False),
    sa.Column("executor", sa.Integer, nullable=True),
)

eve_corporation = sa.Table(
    "eve_corporation",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("corporation_id", sa.Integer, nullable=False, unique=True),
    sa.Column("corporation_name", sa.String, nullable=False),
    sa.Column(
        "alliance_id", sa.Integer, sa.ForeignKey("eve_alliance.alliance_id"), nullable=True
    ),
    sa.Column("ceo", sa.Integer, nullable=False),
    sa.Column("last_updated", sa.DateTime, nullable=False, default=_utcnow),
)

eve_character = sa.Table(
    "eve_character",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("character_id", sa.Integer, nullable=False, unique=True),
    sa.Column("character_name", sa.String, nullable=False),
    sa.Column(
        "corporation_id",
        sa.Integer,
        sa.ForeignKey("eve_corporation.corporation_id"),
        nullable=False,
    ),
    sa.Column("last_updated", sa.DateTime, nullable=False, default=_utcnow),
)

auth_user = sa.Table(
    "auth_user",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("admin", sa.Boolean, nullable=False, default=False),
    sa.Column("created", sa.DateTime, nullable=False, default=_utcnow),
)

auth_user_character_ownership = sa.Table(
    "auth_user_character_ownership",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("auth_user.id"), nullable=False),
    sa.Column(
        "character_id",
        sa.Integer,
        sa.ForeignKey("eve_character.character_id"),
        nullable=False,
        unique=True,
    ),
    sa.Column("ownerhash", sa.String, nullable=False, unique=True),
    sa.Column("main", sa.Boolean, nullable=False, default=False),
)

auth_permission = sa.Table(
    "auth_permission",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("module", sa.String, nullable=False),
    sa.Column("name", sa.String, nullable=False),
    sa.Column("hidden", sa.Boolean, nullable=False, default=False),
)

# The user column carries both references, as the stored schema does.
auth_user_permission = sa.Table(
    "auth_user_permission",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column(
        "user_id",
        sa.Integer,
        sa.ForeignKey("auth_permission.id"),
        sa.ForeignKey("auth_user.id"),
        nullable=False,
    ),
    sa.Column("permission_id", sa.Integer, nullable=False),
)

auth_group = sa.Table(
    "auth_group",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String, nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("confidential", sa.Boolean, nullable=False, default=False),
    sa.Column("group_type", _enum_type(GroupType, "group_type"), nullable=False),
    sa.Column(
        "filter_type",
        _enum_type(GroupFilterType, "group_filter_type"),
        nullable=False,
        default=GroupFilterType.All,
        server_default=GroupFilterType.All.value,
    ),
)

auth_group_user = sa.Table(
    "auth_group_user",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, sa.ForeignKey("auth_group.id"), nullable=False),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("auth_user.id"), nullable=False),
)

auth_group_filter = sa.Table(
    "auth_group_filter",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, sa.ForeignKey("auth_group.id"), nullable=False),
    sa.Column(
        "filter_type", _enum_type(GroupFilterType, "group_filter_type"), nullable=False
    ),
)

auth_group_filter_rule = sa.Table(
    "auth_group_filter_rule",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column(
        "filter_id", sa.Integer, sa.ForeignKey("auth_group_filter.id"), nullable=True
    ),
    sa.Column(
        "criteria", _enum_type(GroupFilterCriteria, "group_filter_criteria"), nullable=False
    ),
    sa.Column(
        "criteria_type",
        _enum_type(GroupFilterCriteriaType, "group_filter_criteria_type"),
        nullable=False,
    ),
    sa.Column("criteria_value", sa.String, nullable=False),
)

auth_group_permission = sa.Table(
    "auth_group_permission",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("group_id", sa.Integer, sa.ForeignKey("auth_group.id"), nullable=False),
    sa.Column(
        "permission_id", sa.Integer, sa.ForeignKey("auth_permission.id"), nullable=False
    ),
)


_RELATIONS: dict[str, tuple[str, ...]] = {
    "auth_group": ("auth_group_filter", "auth_group_permission", "auth_group_user"),
    "auth_group_filter": ("auth_group", "auth_group_filter_rule"),
    "auth_group_filter_rule": ("auth_group_filter",),
    "auth_group_permission": ("auth_group", "auth_permission"),
    "auth_group_user": ("auth_group", "auth_user"),
    "auth_permission": ("auth_group_permission", "auth_user_permission"),
    "auth_user": ("auth_group_user", "auth_user_character_ownership", "auth_user_permission"),
    "auth_user_character_ownership": ("auth_user", "eve_character"),
    "auth_user_permission": ("auth_permission", "auth_user"),
    "eve_alliance": ("eve_corporation",),
    "eve_character": ("auth_user_character_ownership", "eve_corporation"),
    "eve_corporation": ("eve_alliance", "eve_character"),
}


def related_tables(table_name: str) -> tuple[str, ...]:
    """Names of the tables the given table is related to."""
    try:
        return _RELATIONS[table_name]
    except KeyError:
        raise KeyError(f"unknown table {table_name!r}") from None


def _row_mapping(row: Any) -> Mapping[str, Any]:
    return getattr(row, "_mapping", row)


def _column_values(cls: type, row: Any) -> dict[str, Any]:
    mapping = _row_mapping(row)
    return {f.name: mapping[f.name] for f in fields(cls)}


@dataclass(frozen=True)
class Group:
    id: int
    name: str
    description: str | None
    confidential: bool
    group_type: GroupType
    filter_type: GroupFilterType

    @classmethod
    def from_row(cls, row: Any) -> Group:
        """Build the model from a result row or a mapping of column values."""
        mapping = _row_mapping(row)
        return cls(
            id=mapping["id"],
            name=mapping["name"],
            description=mapping["description"],
            confidential=bool(mapping["confidential"]),
            group_type=GroupType(mapping["group_type"]),
            filter_type=GroupFilterType(mapping["filter_type"]),
        )


@dataclass(frozen=True)
class Permission:
    id: int
    module: str
    name: str
    hidden: bool

    @classmethod
    def from_row(cls, row: Any) -> Permission:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


@dataclass(frozen=True)
class User:
    id: int
    admin: bool
    created: datetime

    @classmethod
    def from_row(cls, row: Any) -> User:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


@dataclass(frozen=True)
class CharacterOwnership:
    id: int
    user_id: int
    character_id: int
    ownerhash: str
    main: bool

    @classmethod
    def from_row(cls, row: Any) -> CharacterOwnership:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


@dataclass(frozen=True)
class Alliance:
    id: int
    alliance_id: int
    alliance_name: str
    executor: int | None

    @classmethod
    def from_row(cls, row: Any) -> Alliance:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


@dataclass(frozen=True)
class Corporation:
    id: int
    corporation_id: int
    corporation_name: str
    alliance_id: int | None
    ceo: int
    last_updated: datetime

    @classmethod
    def from_row(cls, row: Any) -> Corporation:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


@dataclass(frozen=True)
class Character:
    id: int
    character_id: int
    character_name: str
    corporation_id: int
    last_updated: datetime

    @classmethod
    def from_row(cls, row: Any) -> Character:
        """Build the model from a result row or a mapping of column values."""
        return cls(**_column_values(cls, row))


def group_to_dto(group: Group) -> GroupDto:
    """The API view of a stored group."""
    return GroupDto(
        id=group.id,
        name=group.name,
        description=group.description,
        group_type=GroupType(group.group_type),
    )