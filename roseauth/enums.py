"""Enumerations and transfer objects shared by the API and the data layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, TypeVar


class GroupType(str, Enum):
    """How users come to be members of a group."""

    Open = "Open"
    Auto = "Auto"
    Apply = "Apply"
    Hidden = "Hidden"


class GroupFilterType(str, Enum):
    """Whether all or any of a filter's rules must match."""

    All = "All"
    Any = "Any"


class GroupFilterCriteria(str, Enum):
    """What a filter rule looks at."""

    Group = "Group"
    Corporation = "Corporation"
    Alliance = "Alliance"
    Role = "Role"


class GroupFilterCriteriaType(str, Enum):
    """How a filter rule compares its value."""

    Is = "Is"
    IsNot = "IsNot"
    GreaterThan = "GreaterThan"
    LessThan = "LessThan"


@dataclass(frozen=True)
class GroupDto:
    """A group as returned by the API."""

    id: int
    name: str
    description: str | None
    group_type: GroupType

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "group_type": self.group_type.value,
        }


@dataclass(frozen=True)
class NewGroupDto:
    """The body of a request that creates or replaces a group."""

    name: str
    confidential: bool
    description: str | None
    group_type: GroupType


@dataclass(frozen=True)
class GroupFilterRuleDto:
    criteria: GroupFilterCriteria
    criteria_type: GroupFilterCriteriaType
    criteria_value: str


@dataclass(frozen=True)
class FilterGroupDto:
    filter_type: GroupFilterType
    rules: list[GroupFilterRuleDto] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateGroupFilterDto:
    filter_type: GroupFilterType
    filter_rules: list[GroupFilterRuleDto] = field(default_factory=list)
    filter_groups: list[FilterGroupDto] = field(default_factory=list)


@dataclass(frozen=True)
class UserDto:
    """The current user with the name of their main character."""

    id: int
    character_id: int
    character_name: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CharacterAffiliationDto:
    """A character with its corporation and, if any, its alliance."""

    character_id: int
    character_name: str
    corporation_id: int
    corporation_name: str
    alliance_id: int | None
    alliance_name: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_E = TypeVar("_E", bound=Enum)

_MISSING = object()


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _field(data: Mapping[str, Any], key: str, *, optional: bool = False) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING or (value is None and not optional):
        if optional:
            return None
        raise ValueError(f"missing field `{key}`")
    return value


def _string(data: Mapping[str, Any], key: str, *, optional: bool = False) -> str | None:
    value = _field(data, key, optional=optional)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _boolean(data: Mapping[str, Any], key: str) -> bool:
    value = _field(data, key)
    if not isinstance(value, bool):
        raise ValueError(f"field `{key}` must be a boolean")
    return value


def _enum(enum_cls: type[_E], data: Mapping[str, Any], key: str) -> _E:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(
            f"unknown variant `{value}` for `{key}`, expected one of {allowed}"
        ) from None


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"field `{key}` must be a list")
    return value


def parse_new_group(data: Any) -> NewGroupDto:
    """Build a NewGroupDto from decoded JSON, raising ValueError if it is malformed."""
    body = _mapping(data, "group")
    return NewGroupDto(
        name=_string(body, "name"),
        confidential=_boolean(body, "confidential"),
        description=_string(body, "description", optional=True),
        group_type=_enum(GroupType, body, "group_type"),
    )


def _parse_rule(data: Any) -> GroupFilterRuleDto:
    body = _mapping(data, "filter rule")
    return GroupFilterRuleDto(
        criteria=_enum(GroupFilterCriteria, body, "criteria"),
        criteria_type=_enum(GroupFilterCriteriaType, body, "criteria_type"),
        criteria_value=_string(body, "criteria_value"),
    )


def _parse_filter_group(data: Any) -> FilterGroupDto:
    body = _mapping(data, "filter group")
    return FilterGroupDto(
        filter_type=_enum(GroupFilterType, body, "filter_type"),
        rules=[_parse_rule(rule) for rule in _list(body, "rules")],
    )


def parse_update_group_filter(data: Any) -> UpdateGroupFilterDto:
    """Build an UpdateGroupFilterDto from decoded JSON, raising ValueError if malformed."""
    body = _mapping(data, "group filter")
    return UpdateGroupFilterDto(
        filter_type=_enum(GroupFilterType, body, "filter_type"),
        filter_rules=[_parse_rule(rule) for rule in _list(body, "filter_rules")],
        filter_groups=[_parse_filter_group(group) for group in _list(body, "filter_groups")],
    )