import json

import pytest

from roseauth.enums import (
    CharacterAffiliationDto,
    FilterGroupDto,
    GroupDto,
    GroupFilterCriteria,
    GroupFilterCriteriaType,
    GroupFilterRuleDto,
    GroupFilterType,
    GroupType,
    NewGroupDto,
    UpdateGroupFilterDto,
    UserDto,
    parse_new_group,
    parse_update_group_filter,
)


def test_enum_values_match_database_labels():
    parsed_types = [
        parse_new_group({"name": "g", "confidential": False, "group_type": label}).group_type
        for label in ["Open", "Auto", "Apply", "Hidden"]
    ]
    assert parsed_types == list(GroupType)
    assert [member.value for member in GroupType] == ["Open", "Auto", "Apply", "Hidden"]

    rules = [
        {"criteria": criteria, "criteria_type": criteria_type, "criteria_value": "1"}
        for criteria in ["Group", "Corporation", "Alliance", "Role"]
        for criteria_type in ["Is", "IsNot", "GreaterThan", "LessThan"]
    ]
    dto = parse_update_group_filter(
        {"filter_type": "Any", "filter_rules": rules, "filter_groups": []}
    )
    assert dto.filter_type is GroupFilterType.Any
    assert {rule.criteria for rule in dto.filter_rules} == set(GroupFilterCriteria)
    assert {rule.criteria_type for rule in dto.filter_rules} == set(GroupFilterCriteriaType)
    assert {member.value for member in GroupFilterType} == {"All", "Any"}
    assert {member.value for member in GroupFilterCriteria} == {
        "Group",
        "Corporation",
        "Alliance",
        "Role",
    }
    assert {member.value for member in GroupFilterCriteriaType} == {
        "Is",
        "IsNot",
        "GreaterThan",
        "LessThan",
    }


def test_group_dto_to_dict_serializes_enum_as_string():
    dto = GroupDto(id=3, name="Fleet", description=None, group_type=GroupType.Hidden)
    data = dto.to_dict()
    assert data == {"id": 3, "name": "Fleet", "description": None, "group_type": "Hidden"}
    assert json.loads(json.dumps(data)) == data


def test_user_dto_to_dict():
    dto = UserDto(id=1, character_id=2114794365, character_name="Pilot")
    assert dto.to_dict() == {"id": 1, "character_id": 2114794365, "character_name": "Pilot"}


def test_character_affiliation_to_dict_keeps_optional_alliance():
    dto = CharacterAffiliationDto(
        character_id=10,
        character_name="Pilot",
        corporation_id=20,
        corporation_name="Corp",
        alliance_id=None,
        alliance_name=None,
    )
    data = dto.to_dict()
    assert data["alliance_id"] is None
    assert data["alliance_name"] is None
    assert CharacterAffiliationDto(**data) == dto


def test_parse_new_group_full():
    body = {
        "name": "Members",
        "confidential": True,
        "description": "All members",
        "group_type": "Open",
    }
    assert parse_new_group(body) == NewGroupDto(
        name="Members", confidential=True, description="All members", group_type=GroupType.Open
    )


def test_parse_new_group_missing_description_is_none():
    dto = parse_new_group({"name": "Members", "confidential": False, "group_type": "Apply"})
    assert dto.description is None
    assert dto.group_type is GroupType.Apply


@pytest.mark.parametrize(
    "body",
    [
        {"confidential": False, "group_type": "Open"},
        {"name": "Members", "group_type": "Open"},
        {"name": "Members", "confidential": False},
        {"name": "Members", "confidential": 1, "group_type": "Open"},
        {"name": 5, "confidential": False, "group_type": "Open"},
        {"name": "Members", "confidential": False, "group_type": "open"},
        {"name": "Members", "confidential": False, "group_type": "Open", "description": 4},
        ["Members"],
    ],
)
def test_parse_new_group_rejects_malformed(body):
    with pytest.raises(ValueError):
        parse_new_group(body)


def test_parse_update_group_filter_nested():
    body = {
        "filter_type": "Any",
        "filter_rules": [
            {"criteria": "Corporation", "criteria_type": "Is", "criteria_value": "98000001"}
        ],
        "filter_groups": [
            {
                "filter_type": "All",
                "rules": [
                    {"criteria": "Role", "criteria_type": "IsNot", "criteria_value": "ceo"},
                ],
            }
        ],
    }
    dto = parse_update_group_filter(body)
    assert dto == UpdateGroupFilterDto(
        filter_type=GroupFilterType.Any,
        filter_rules=[
            GroupFilterRuleDto(
                GroupFilterCriteria.Corporation, GroupFilterCriteriaType.Is, "98000001"
            )
        ],
        filter_groups=[
            FilterGroupDto(
                GroupFilterType.All,
                [GroupFilterRuleDto(GroupFilterCriteria.Role, GroupFilterCriteriaType.IsNot, "ceo")],
            )
        ],
    )


def test_parse_update_group_filter_rejects_bad_rule():
    body = {
        "filter_type": "All",
        "filter_rules": [{"criteria": "Planet", "criteria_type": "Is", "criteria_value": "x"}],
        "filter_groups": [],
    }
    with pytest.raises(ValueError):
        parse_update_group_filter(body)


def test_parse_update_group_filter_requires_lists():
    with pytest.raises(ValueError):
        parse_update_group_filter({"filter_type": "All", "filter_rules": {}, "filter_groups": []})